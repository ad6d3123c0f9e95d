"""
Realtime messaging and presence layer.

A python-socketio AsyncServer mounted in front of the FastAPI app carries
direct messages, typing signals, read receipts and notifications over
websocket (with long-polling fallback). Presence is tracked per user in a
swappable registry; server-initiated pushes target the personal room
`user:{user_id}` so every device of a user receives them.
"""
