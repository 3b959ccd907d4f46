"""
Chat app for direct messaging between students.

This app handles:
- Two-party conversations with idempotent get-or-create
- Message history with offset pagination
- Per-user clear/delete visibility overlay
- Realtime message events over Django Channels
- The per-connection chat session controller

Related apps:
    - authentication: User/Profile for participants
    - notifications: Pending push notifications created on send

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.get_or_create_direct(alice, bob)
    conversation, created = result.data

    MessageService.send_message(conversation, alice, "Hey!")
"""
