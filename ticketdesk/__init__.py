"""ticketdesk: turn infrastructure request forms into Jira tickets."""

__version__ = "0.1.0"
