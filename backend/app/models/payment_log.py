from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from app.core.base import Base


class PaymentLog(Base):
    __tablename__ = "payment_logs"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    telefone = Column(String(50), nullable=True)
    cpf = Column(String(20), nullable=True)

    # Free-form label chosen on the landing page: "à vista", "parcelado", "PIX", ...
    payment_method = Column(String(64), nullable=False)

    aceitou = Column(Boolean, nullable=False, server_default="true", default=True)
    # Only set by an explicit PIX confirmation (a separate row, matched by name/email).
    pagou_pix = Column(Boolean, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
