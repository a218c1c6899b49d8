"""
Pydantic models/schemas for the application
"""
from pydantic import BaseModel, Field, ConfigDict, EmailStr
from typing import List, Optional, Dict, Any, Literal


CryptoCurrency = Literal["BTC", "ETH", "USDT"]
WalletType = Literal["BTC", "ETH", "USDT", "PAYPAL"]
WalletRequestType = Literal["BTC", "ETH", "USDT", "manual-deposit", "manual-withdraw"]
DepositCurrency = Literal["BTC", "ETH", "USDT", "USD"]
OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "completed", "failed", "refunded"]
PaymentMethod = Literal["crypto", "paypal", "bank_transfer"]
MembershipTier = Literal["basic", "premium", "gold", "platinum"]
ListingCondition = Literal["new", "like-new", "good", "fair", "poor"]


# ==================== AUTH MODELS ====================

class UserCreate(BaseModel):
    email: EmailStr
    password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None

class UserLogin(BaseModel):
    email: EmailStr
    password: str
    totp_token: Optional[str] = None
    device_name: Optional[str] = None

class UserResponse(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    is_admin: bool = False
    two_factor_enabled: bool = False
    login_approval_enabled: bool = False
    created_at: Optional[str] = None

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

class TwoFactorToken(BaseModel):
    totp_token: str

class PasswordConfirm(BaseModel):
    password: str

class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str

class PrivacyUpdate(BaseModel):
    show_online_status: Optional[bool] = None
    show_profile_picture: Optional[bool] = None
    login_approval_enabled: Optional[bool] = None


# ==================== LOGIN APPROVAL MODELS ====================

class LoginRejectRequest(BaseModel):
    rejection_reason: str = Field(..., min_length=1)


# ==================== BLOCKCHAIN MODELS ====================

class TradeRequest(BaseModel):
    from_currency: CryptoCurrency
    to_currency: CryptoCurrency
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    from_address: Optional[str] = None
    to_address: Optional[str] = None


# ==================== WALLET MODELS ====================

class WalletAssign(BaseModel):
    user_id: str
    wallet_address: str
    wallet_type: WalletType
    public_key: Optional[str] = None

class BalanceUpdate(BaseModel):
    balance: float = Field(..., ge=0, allow_inf_nan=False)

class WalletRequestCreate(BaseModel):
    wallet_type: WalletRequestType
    reference: Optional[str] = None
    proof_file: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0, allow_inf_nan=False)

class WalletRequestApprove(BaseModel):
    wallet_address: Optional[str] = None
    approval_notes: Optional[str] = None

class WalletRequestReject(BaseModel):
    rejection_reason: str = Field(..., min_length=1)


# ==================== DEPOSIT MODELS ====================

class DepositCreate(BaseModel):
    deposit_amount: float = Field(..., gt=0, allow_inf_nan=False)
    currency: DepositCurrency
    to_address: str
    transaction_hash: Optional[str] = None
    from_address: Optional[str] = None
    notes: Optional[str] = None

class ConfirmationUpdate(BaseModel):
    confirmations: int = Field(..., ge=0)

class DepositFailure(BaseModel):
    reason: str = Field(..., min_length=1)


# ==================== CATALOG MODELS ====================

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    sku: str = Field(..., min_length=1)
    price: float = Field(..., ge=0, allow_inf_nan=False)
    currency: str = "USD"
    category: str = Field(..., min_length=1)
    stock: int = Field(0, ge=0)
    images: List[str] = []
    specifications: Dict[str, Any] = {}
    seller_id: Optional[str] = None
    is_active: bool = True

class ProductUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = None
    category: Optional[str] = None
    images: Optional[List[str]] = None
    specifications: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    rating: Optional[float] = Field(None, ge=0, le=5, allow_inf_nan=False)

class StockUpdate(BaseModel):
    quantity: int = Field(..., ge=0)


# ==================== MARKETPLACE MODELS ====================

class ListingCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    category: str = Field(..., min_length=1)
    condition: ListingCondition = "new"
    price: float = Field(..., ge=0, allow_inf_nan=False)
    currency: str = "USD"
    quantity: int = Field(1, ge=0)
    images: List[str] = []
    tags: List[str] = []
    location: Optional[str] = None
    ships_to: List[str] = []
    shipping_cost: float = Field(0, ge=0, allow_inf_nan=False)
    accepts_offers: bool = False

class ListingUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[ListingCondition] = None
    price: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    currency: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    location: Optional[str] = None
    ships_to: Optional[List[str]] = None
    shipping_cost: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    accepts_offers: Optional[bool] = None
    status: Optional[Literal["active", "delisted"]] = None


# ==================== ORDER MODELS ====================

class ShippingAddress(BaseModel):
    street: str
    city: str
    state: Optional[str] = None
    zip_code: str
    country: str

class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)

class OrderCreate(BaseModel):
    items: List[OrderItemRequest] = Field(..., min_length=1)
    payment_method: PaymentMethod
    shipping_address: Optional[ShippingAddress] = None
    notes: Optional[str] = None

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class PaymentStatusUpdate(BaseModel):
    payment_status: PaymentStatus

class ShippingUpdate(BaseModel):
    shipping_address: ShippingAddress
    tracking_number: str = Field(..., min_length=1)


# ==================== MEMBERSHIP MODELS ====================

class MembershipCreate(BaseModel):
    membership_tier: MembershipTier = "basic"
    payment_method: Optional[str] = None

class MembershipUpgrade(BaseModel):
    membership_tier: MembershipTier


# ==================== FRIEND MODELS ====================

class FriendRespond(BaseModel):
    accept: bool


# ==================== ADMIN MODELS ====================

class AdminUserUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
