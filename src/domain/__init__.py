"""Domain layer: models, repositories and services per business area.

- **profiles**: Display names and emails of authenticated users
- **tents**: Two-member workspaces, invite codes and activity logs
- **invoices**: Invoice lifecycle between a client and a manager
- **notifications**: In-app notifications
- **rates**: Service rate cards and auto-reply preferences
- **email**: Mailbox connections, sync, inquiry triage and auto-replies
"""
