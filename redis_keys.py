REDIS_USER_KEY = "user:{user_id}" # user id - profile + presence hash
REDIS_CHAT_KEY = "chat:meta:{chat_id}" # chat id - chat metadata hash
REDIS_CHAT_MEMBERS_KEY = "chat:members:{chat_id}" # chat id - set of member user IDs
REDIS_MESSAGE_KEY = "message:{message_id}" # message id - message hash
REDIS_CHAT_MESSAGES_KEY = "chat:messages:{chat_id}" # chat id - list of message IDs, oldest first

# **Example `user:{id}` hash fields**
# - `id`, `username`, `email`, `first_name`, `last_name`, `avatar`
# - `is_online` = "1" / "0"
# - `last_seen` = ISO timestamp (set when the last connection closes)

# **Example `message:{id}` hash fields**
# - `id`, `chat_id`, `sender_id`, `receiver_id` (optional)
# - `content`, `type` (TEXT, IMAGE, FILE, AUDIO, VIDEO)
# - `file_url`, `file_name`, `file_size` (optional)
# - `is_read` = "1" / "0"
# - `created_at`, `updated_at` = ISO timestamps
