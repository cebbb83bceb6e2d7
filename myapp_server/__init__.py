"""
MyApp Server module.

FastAPI application exposing the local cluster store over HTTP so users
can create, edit and delete MyApps while the controller reconciles them.
Run with: uvicorn myapp_server.app:app
"""
