"""
Agent query pipeline.

Classifies crypto questions and fans them out to the knowledge base and the
price service:

- classification: rule-based query categories and project detection
- knowledge_base / prices: provider clients that never fail the request
- orchestration: concurrent dispatch and response assembly
"""
