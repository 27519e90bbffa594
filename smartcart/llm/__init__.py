"""
LLM integration layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Describe the cart and the restaurant menu to the advisor model.
- Pull the structured analysis block out of the model's free-text reply.
- Report unavailable or malformed replies as typed errors for the caller.
"""
