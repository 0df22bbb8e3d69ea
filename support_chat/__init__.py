"""Support chat app.

Real-time conversations between end-users and support staff: the
conversation directory, message store, read receipts, presence and the
WebSocket gateway that ties them together.
"""
