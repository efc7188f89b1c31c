"""Customer service ticket triage handled by an external task worker.

Run with:
    fluxcdc worker run guides.customer_service_worker:registry

Each topic declares the variables it needs as a pydantic model; outputs are
written back under the names the following steps read.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from fluxcdc import LeasedTask, TopicRegistry

registry = TopicRegistry()


class TicketInput(BaseModel):
    ticket_id: str = Field(alias="ticketId")
    customer_id: str = Field(alias="customerId")
    subject: str = ""
    body: str = ""
    channel: str = "email"
    submitted_at: Optional[str] = Field(default=None, alias="submittedAt")


class SentimentResult(BaseModel):
    sentiment: str
    confidence: float
    urgency: str


class CustomerProfile(BaseModel):
    customer_id: str = Field(alias="customerId")
    tier: str
    ltv: float
    account_age_days: int = Field(alias="accountAgeDays")
    open_tickets: int = Field(alias="openTickets")


class ChurnSignals(BaseModel):
    customer_id: str = Field(alias="customerId")
    churn_score: float = Field(alias="churnScore")
    risk_level: str = Field(alias="riskLevel")


class RoutingDecision(BaseModel):
    queue: str
    priority: int
    reason_codes: List[str] = Field(default_factory=list, alias="reasonCodes")
    escalation_level: int = Field(default=0, alias="escalationLevel")


class ResponseDraft(BaseModel):
    body: str
    tone: str
    suggest_human: bool = Field(alias="suggestHuman")


class TicketVars(BaseModel):
    ticket: TicketInput


class CustomerVars(BaseModel):
    customer_id: str = Field(alias="customerId")


class RoutingVars(BaseModel):
    ticket: TicketInput
    sentiment: SentimentResult
    profile: CustomerProfile = Field(alias="customerProfile")
    churn: ChurnSignals = Field(alias="churnSignals")


class ResponseVars(BaseModel):
    ticket: TicketInput
    sentiment: SentimentResult
    routing: RoutingDecision = Field(alias="routingDecision")


NEGATIVE_WORDS = ("angry", "cancel", "refund", "broken", "terrible", "worst")


@registry.topic("analyze-sentiment", input_model=TicketVars)
def analyze_sentiment(payload: TicketVars, task: LeasedTask) -> dict:
    text = f"{payload.ticket.subject} {payload.ticket.body}".lower()
    hits = sum(word in text for word in NEGATIVE_WORDS)
    sentiment = "negative" if hits else "neutral"
    urgency = "high" if hits >= 2 else ("medium" if hits else "low")
    return {
        "sentiment": SentimentResult(
            sentiment=sentiment, confidence=min(0.5 + 0.2 * hits, 0.95), urgency=urgency
        )
    }


@registry.topic("lookup-customer-profile", input_model=CustomerVars)
def lookup_customer_profile(payload: CustomerVars, task: LeasedTask) -> dict:
    # Deterministic stand-in for a CRM lookup.
    seed = sum(ord(c) for c in payload.customer_id)
    tier = ("bronze", "silver", "gold", "platinum")[seed % 4]
    profile = CustomerProfile(
        customerId=payload.customer_id,
        tier=tier,
        ltv=float(seed % 5000),
        accountAgeDays=seed % 1500,
        openTickets=seed % 4,
    )
    return {"customerProfile": profile}


@registry.topic("check-churn-signals", input_model=CustomerVars)
def check_churn_signals(payload: CustomerVars, task: LeasedTask) -> dict:
    score = (sum(ord(c) for c in payload.customer_id) % 100) / 100
    risk = "high" if score > 0.7 else ("medium" if score > 0.4 else "low")
    return {
        "churnSignals": ChurnSignals(
            customerId=payload.customer_id, churnScore=score, riskLevel=risk
        )
    }


@registry.topic("decide-routing", input_model=RoutingVars)
def decide_routing(payload: RoutingVars, task: LeasedTask) -> dict:
    reasons: List[str] = []
    escalation = 0
    if payload.sentiment.urgency == "high":
        reasons.append("HIGH_URGENCY")
        escalation += 1
    if payload.churn.risk_level == "high":
        reasons.append("CHURN_RISK")
        escalation += 1
    if payload.profile.tier in ("gold", "platinum"):
        reasons.append("PREMIUM_TIER")
    queue = "priority" if escalation or "PREMIUM_TIER" in reasons else "standard"
    return {
        "routingDecision": RoutingDecision(
            queue=queue,
            priority=1 + escalation,
            reasonCodes=reasons,
            escalationLevel=escalation,
        )
    }


@registry.topic("generate-response", input_model=ResponseVars)
def generate_response(payload: ResponseVars, task: LeasedTask) -> dict:
    tone = "apologetic" if payload.sentiment.sentiment == "negative" else "friendly"
    body = (
        f"Hello, thanks for contacting us about '{payload.ticket.subject}'. "
        f"Your request is with our {payload.routing.queue} team."
    )
    return {
        "responseDraft": ResponseDraft(
            body=body, tone=tone, suggestHuman=payload.routing.escalation_level > 0
        )
    }
