from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from app.models.payment_log import PaymentLog


def create_payment_log(
    db: Session,
    *,
    name: str,
    email: str,
    payment_method: str,
    telefone: Optional[str] = None,
    cpf: Optional[str] = None,
    pagou_pix: Optional[bool] = None,
    commit: bool = True,
) -> PaymentLog:
    """
    Insert one legacy payment log row.

    A PIX confirmation arrives as its own call with `pagou_pix` set; it is not
    merged into the row written when the user first picked PIX.
    """
    if not (name or "").strip() or not (email or "").strip() or not (payment_method or "").strip():
        raise ValueError("Missing required fields: name, email, and payment_method are required")

    log = PaymentLog(
        name=name.strip(),
        email=email.strip(),
        telefone=telefone or None,
        cpf=cpf or None,
        payment_method=payment_method.strip(),
        aceitou=True,
        pagou_pix=pagou_pix,
    )
    db.add(log)
    if commit:
        db.commit()
        db.refresh(log)
    else:
        db.flush()
    return log
