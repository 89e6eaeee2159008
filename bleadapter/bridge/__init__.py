"""
Bridge between the BlueZ object layer and the platform broker: publisher,
dispatcher, command processor, scan supervisor, broker adapter and the
platform REST client.
"""
