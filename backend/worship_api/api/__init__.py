"""HTTP and websocket routers"""
