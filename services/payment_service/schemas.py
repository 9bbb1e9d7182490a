from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OAuthTokenResponse(BaseModel):
    access_token: str = Field(min_length=1)
    expires_in: Optional[int] = None


class StkPushResponse(BaseModel):
    """Accepted STK push as returned by Daraja's processrequest endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    merchant_request_id: str = Field(alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    response_code: str = Field(alias="ResponseCode")
    response_description: Optional[str] = Field(default=None, alias="ResponseDescription")
    customer_message: Optional[str] = Field(default=None, alias="CustomerMessage")


class CallbackItem(BaseModel):
    name: str = Field(alias="Name")
    value: Any = Field(default=None, alias="Value")


class CallbackMetadata(BaseModel):
    items: List[CallbackItem] = Field(default_factory=list, alias="Item")


class StkCallback(BaseModel):
    merchant_request_id: Optional[str] = Field(default=None, alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    result_code: int = Field(alias="ResultCode")
    result_desc: Optional[str] = Field(default=None, alias="ResultDesc")
    metadata: Optional[CallbackMetadata] = Field(default=None, alias="CallbackMetadata")

    def metadata_value(self, name: str):
        if not self.metadata:
            return None
        for item in self.metadata.items:
            if item.name == name:
                return item.value
        return None


class CallbackBody(BaseModel):
    stk_callback: StkCallback = Field(alias="stkCallback")


class MpesaCallback(BaseModel):
    """Result notification Daraja posts to MPESA_CALLBACK_URL."""
    body: CallbackBody = Field(alias="Body")


class MpesaTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    amount: float
    phone_number: str
    status: str
    checkout_request_id: Optional[str] = None
    merchant_request_id: Optional[str] = None
    mpesa_receipt_number: Optional[str] = None
