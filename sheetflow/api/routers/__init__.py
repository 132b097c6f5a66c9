"""
FastAPI routers for the pipeline entry points.

Uploads/fetches stage a source and return its inferred schema, imports
confirm a schema and start the background import, and tables expose the
read side (row preview and the confirmed schema).
"""
