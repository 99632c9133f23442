import uuid
from sqlalchemy.orm import Session

from app.ai.models import get_default_model_for_plan
from app.models.tenant import Tenant
from app.models.conversation import Conversation
from app.models.message import Message

# Stable id so a local widget embed can point at the demo tenant across reseeds
DEMO_TENANT_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")

DEMO_SYSTEM_PROMPT = """You are Bean, the friendly assistant for Sunrise Coffee Co.

Answer questions about the menu, opening hours and location using the information below.
Keep answers short and warm. If you do not know something, suggest calling the shop.
Never make up prices or allergy information."""

DEMO_DOCUMENT_CONTEXT = """Hours: Mon-Fri 7am-6pm, Sat-Sun 8am-4pm.
Address: 42 Harbor Street.
Menu highlights: Lavender Oat Milk Latte $5.50, House Blend Drip $3.00, Croissant $3.50.
Oat, almond and soy milk available at no extra charge."""


def seed_db(db: Session) -> Tenant:
    """Seed the database with a demo tenant on the localhost domain."""

    # Clear existing data (optional - comment out if you want to preserve data)
    db.query(Message).delete()
    db.query(Conversation).delete()
    db.query(Tenant).delete()
    db.commit()

    tenant = Tenant(
        id=DEMO_TENANT_ID,
        name="Sunrise Coffee Co.",
        domain="localhost",
        active=True,
        plan="starter",
        message_limit=1000,
        messages_used=0,
        ai_model=get_default_model_for_plan("starter").id,
        bot_name="Bean",
        welcome_message="Hi! I'm Bean. Ask me anything about Sunrise Coffee.",
        system_prompt=DEMO_SYSTEM_PROMPT,
        document_context=DEMO_DOCUMENT_CONTEXT,
        primary_color="#B45309",
        border_radius=16,
        position="bottom-right",
        customization={
            "greetingMessage": "Need a recommendation?",
            "glowEffect": True,
            "starterQuestions": ["What are your hours?", "Do you have oat milk?"],
        },
        conversation_expiry_hours=24,
    )
    db.add(tenant)
    db.commit()
    db.refresh(tenant)

    print("Seeded demo tenant:")
    print(f"  - {tenant.name} (id={tenant.id}, domain={tenant.domain}, model={tenant.ai_model})")
    return tenant
