"""
Pydantic Schemas

- chat: widget chat request/response
- classification: structured LLM contracts
- operator: documents, knowledge gaps, tickets, analytics
"""
