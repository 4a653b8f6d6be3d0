"""Collection Decisioning Service for accounts-receivable collections

This service decides how an overdue invoice should be collected:
- Scores the customer relationship from invoice and account signals
- Routes the decision to a routine, strategic or sensitive drafting model
- Generates a draft recommendation with business impact and escalation triggers
- Manages human approval and execution of the recommended action
"""

__version__ = "1.0.0"
