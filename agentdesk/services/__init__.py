"""
Business Logic Services

Includes:
- ChatService: Widget chat pipeline
- PromptOrchestrator: Grounded JSON completions
- KnowledgeGapService: Unanswered question clustering, fill and skip
- ConversationAnalyzer: Conversation scoring
- QuotaService: Tenant message quotas
- TicketService: Support tickets
- AnalyticsService: Conversation analytics
- IngestionService: Document chunking and embedding
- ProviderRateLimiter: Shared pacing for provider calls
"""
