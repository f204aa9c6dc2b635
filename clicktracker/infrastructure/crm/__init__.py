"""CRM Adapters: concrete CrmGateway implementations."""
