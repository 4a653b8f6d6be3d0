"""
Drafting prompt templates.

Every prompt is a shared context block (customer, invoice, payment terms)
followed by one of three bodies. The body is chosen by tier alone.
"""
from datetime import datetime
from typing import Dict

from collection_decisioning.models.routing import ModelTier, RoutingContext

RESPONSE_FORMAT = """RESPONSE FORMAT:
Respond with a single JSON object using exactly these keys:
{
  "recommendedAction": "snake_case_action",
  "confidence": 0-100,
  "tone": "gentle | standard | firm | urgent",
  "timing": "immediate | tomorrow | next-week | escalate",
  "draftEmail": {"subject": "...", "body": "..."},
  "reasoning": "...",
  "alternatives": [
    {"approach": "...", "confidence": 0-100, "description": "...", "timeline": "..."}
  ]
}"""

ROUTINE_BODY = """TASK: Generate standard payment reminder recommendation

REQUIREMENTS:
1. Professional, relationship-preserving tone
2. Draft email (subject + body, max 150 words)
3. Recommended timing (immediate/tomorrow/next-week)
4. Confidence score (0-100)
5. Brief reasoning (1-2 sentences)

OUTPUT FORMAT:
{
  "recommendedAction": "send_payment_reminder",
  "confidence": 85,
  "tone": "gentle",
  "timing": "immediate",
  "draftEmail": {
    "subject": "Payment reminder for Invoice #...",
    "body": "Hi [Name],\\n\\n..."
  },
  "reasoning": "Standard overdue timeline with good payment history suggests gentle reminder appropriate",
  "alternatives": []
}"""

STRATEGIC_BODY = """TASK: Strategic collection recommendation with relationship preservation

PROVIDE COMPREHENSIVE ANALYSIS:

1. SITUATION ASSESSMENT
   - Risk factors and relationship implications
   - Payment probability analysis
   - Competitive considerations

2. STRATEGIC OPTIONS (provide 3 alternatives)
   For each option:
   - Approach and tactics
   - Success probability (0-100)
   - Timeline and milestones
   - Relationship impact

3. RECOMMENDED APPROACH
   - Primary recommendation with reasoning
   - Draft communication
   - Success metrics

4. BUSINESS IMPACT
   - Revenue at risk
   - Relationship preservation considerations
   - Long-term account value implications

""" + RESPONSE_FORMAT

SENSITIVE_BODY = """CRITICAL SITUATION REQUIRING EXECUTIVE BRIEFING

PROVIDE EXECUTIVE DECISION PACKAGE:

1. CRISIS ASSESSMENT
   - Immediate threats and timeline
   - Root cause analysis
   - Financial exposure calculation

2. STRATEGIC RESPONSE OPTIONS
   - Crisis containment strategy
   - Relationship recovery plan
   - Legal/compliance considerations

3. EXECUTIVE ACTION PLAN
   - Immediate actions (next 24 hours)
   - Short-term strategy (next 2 weeks)
   - Long-term relationship recovery

4. RISK MITIGATION
   - Reputation management
   - Financial exposure limits
   - Relationship preservation strategies

""" + RESPONSE_FORMAT

TIER_BODIES: Dict[ModelTier, str] = {
    ModelTier.ROUTINE: ROUTINE_BODY,
    ModelTier.STRATEGIC: STRATEGIC_BODY,
    ModelTier.SENSITIVE: SENSITIVE_BODY,
}


def format_currency(value: float) -> str:
    return f"${value:,.0f}"


def _format_date(value: datetime) -> str:
    return value.strftime("%m/%d/%Y")


def build_base_context(context: RoutingContext) -> str:
    """Shared customer, invoice and payment-terms block."""
    customer = context.customer
    invoice = context.invoice
    account_age = customer.account_age_months(context.as_of) or 0
    health_score = (
        f"{customer.health_score:g}" if customer.health_score is not None else "Unknown"
    )

    return f"""CUSTOMER CONTEXT:
- Company: {customer.name}
- ARR: {format_currency(customer.account_value)}
- Relationship Score: {context.relationship_score}/100 ({context.risk_level.value} risk)
- Account Age: {account_age} months

INVOICE DETAILS:
- Amount: {format_currency(invoice.amount)}
- Invoice #: {invoice.invoice_number}
- Days Overdue: {context.days_past_due}
- Issue Date: {_format_date(invoice.issue_date)}
- Due Date: {_format_date(invoice.due_date)}

PAYMENT CONTEXT:
- Payment Terms: {customer.payment_terms or "NET15"}
- Health Score: {health_score}/100
- Support Tickets: {customer.support_ticket_count} recent
"""


def build_prompt(tier: ModelTier, context: RoutingContext) -> str:
    """Assemble the drafting prompt for a tier."""
    return f"{build_base_context(context)}\n{TIER_BODIES[tier]}"
