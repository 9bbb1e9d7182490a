from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.sql import func

from shared.config.database import Base


class MpesaTransaction(Base):
    __tablename__ = "mpesa_transactions"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    phone_number = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default="pending") # pending, completed, failed
    products = Column(JSON, nullable=False, default=list) # [{product, quantity, price}]
    checkout_request_id = Column(String(100), nullable=True, unique=True, index=True)
    merchant_request_id = Column(String(100), nullable=True)
    mpesa_receipt_number = Column(String(100), nullable=True)
    result_code = Column(Integer, nullable=True)
    result_desc = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
