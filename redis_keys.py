REDIS_META_KEY = "room:meta:{slug}" # room id - JSON document with members and messages
REDIS_META_PATTERN = "room:meta:*"
REDIS_NAME_KEY = "room:name:{name}" # casefolded room name - room id

# **`room:meta:{id}` document fields**
# - `id`, `name`, `password`, `salt`
# - `created_at`, `expires_at` = ISO timestamps
# - `users` = {userId: {id, room_id, display_name, joined_at}}
# - `messages` = [{id, room_id, user_id, display_name, encrypted_payload, nonce, salt, created_at, expires_at}]
# Both keys carry EXPIREAT = room expiry so Redis drops them even without a sweep.
