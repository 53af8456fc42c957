"""
Completions Tracker — AI Copilot.

    gateway.py            OpenAI-compatible chat-completions client (requests)
    strategies.py         Delegated | RuleBased response strategies
    insight_responder.py  answer_question(): context block + strategy + Insight row
"""
