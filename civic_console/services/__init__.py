"""
Services layer - Business logic goes here.
Keep services focused on specific concerns (roles, persistence).

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- The acting user is always passed in, never read from global state
- Only report_store talks to the reports collection
"""
