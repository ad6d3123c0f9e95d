"""Socket.IO event names and room naming."""


class ClientEvent:
    """Events emitted by clients."""

    SEND_MESSAGE = "send_message"
    GET_MESSAGES = "get_messages"
    GET_CONVERSATIONS = "get_conversations"
    MARK_AS_READ = "mark_as_read"
    MARK_CONVERSATION_READ = "mark_conversation_read"
    TYPING_START = "typing_start"
    TYPING_STOP = "typing_stop"

    GET_NOTIFICATIONS = "get_notifications"
    GET_UNREAD_NOTIFICATIONS = "get_unread_notifications"
    GET_UNREAD_COUNT = "get_unread_count"
    MARK_NOTIFICATION_READ = "mark_notification_read"
    MARK_ALL_READ = "mark_all_read"
    DELETE_NOTIFICATION = "delete_notification"
    DELETE_ALL_READ = "delete_all_read"
    DELETE_ALL_NOTIFICATIONS = "delete_all_notifications"


class ServerEvent:
    """Events emitted by the server."""

    ONLINE_USERS = "online_users"
    USER_ONLINE = "user_online"
    USER_OFFLINE = "user_offline"
    PING = "ping"
    ERROR = "error"

    MESSAGE_SENT = "message_sent"
    NEW_MESSAGE = "new_message"
    MESSAGES_HISTORY = "messages_history"
    CONVERSATIONS_LIST = "conversations_list"
    MESSAGE_READ = "message_read"
    CONVERSATION_READ = "conversation_read"
    MESSAGES_READ_BY = "messages_read_by"
    USER_TYPING = "user_typing"
    USER_STOPPED_TYPING = "user_stopped_typing"

    NOTIFICATION = "notification"
    NOTIFICATIONS_LIST = "notifications_list"
    UNREAD_NOTIFICATIONS = "unread_notifications"
    UNREAD_COUNT = "unread_count"
    NOTIFICATION_READ = "notification_read"
    ALL_NOTIFICATIONS_READ = "all_notifications_read"
    NOTIFICATION_DELETED = "notification_deleted"
    READ_NOTIFICATIONS_DELETED = "read_notifications_deleted"
    ALL_NOTIFICATIONS_DELETED = "all_notifications_deleted"


def user_room(user_id: str) -> str:
    """Personal broadcast room joined by every connection of a user."""
    return f"user:{user_id}"
