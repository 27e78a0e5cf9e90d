"""
API routers

- chat: public widget endpoint
- agents: agent registration and document uploads
- knowledge_gaps, tickets, analytics: operator endpoints
"""
