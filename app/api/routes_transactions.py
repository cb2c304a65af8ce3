import logging

from fastapi import APIRouter, Request, status

from app.api.dependencies import AdminDep, CompanyIdDep, TransactionServiceDep
from app.api.rate_limit import RATE_LIMITS, limiter
from app.models.payment_models import PaymentMethod
from app.models.schemas import (
    ChargeOut,
    RefundRequest,
    TransactionCreate,
    TransactionCreateOut,
    TransactionOut,
)
from app.services.cielo_client import BoletoCustomer, CardData
from app.services.cielo_responses import BoletoCharge, CardCharge, PixCharge

logger = logging.getLogger(__name__)
router = APIRouter()


def _charge_out(charge) -> ChargeOut:
    if isinstance(charge, PixCharge):
        return ChargeOut(pix_qr_code_base64=charge.qr_code_base64, pix_qr_code=charge.qr_code_string)
    if isinstance(charge, BoletoCharge):
        return ChargeOut(
            boleto_url=charge.url,
            boleto_digitable_line=charge.digitable_line,
            boleto_barcode=charge.barcode_number,
            boleto_expiration_date=charge.expiration_date,
        )
    if isinstance(charge, CardCharge):
        return ChargeOut(card_return_code=charge.return_code, card_return_message=charge.return_message)
    return ChargeOut()


@router.post("", response_model=TransactionCreateOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["transaction_create"])
def create_transaction(
    request: Request,
    data: TransactionCreate,
    company_id: CompanyIdDep,
    svc: TransactionServiceDep,
):
    """Start a contribution: creates the charge at Cielo and stores the transaction."""
    card = CardData(**data.card.model_dump()) if data.card else None
    boleto_customer = BoletoCustomer(**data.boleto_customer.model_dump()) if data.boleto_customer else None
    result = svc.initiate_contribution(
        company_id,
        data.contributor_id,
        data.amount,
        PaymentMethod(data.payment_method),
        installments=data.installments,
        description=data.description,
        origin_church_id=data.origin_church_id,
        customer_cpf=data.customer_cpf,
        card=card,
        boleto_customer=boleto_customer,
    )
    return TransactionCreateOut(
        transaction=TransactionOut.model_validate(result.transaction),
        charge=_charge_out(result.charge),
    )


@router.get("/{transaction_id}", response_model=TransactionOut)
def get_transaction(transaction_id: str, company_id: CompanyIdDep, svc: TransactionServiceDep):
    return svc.get(company_id, transaction_id)


@router.post("/{transaction_id}/sync", response_model=TransactionOut)
@limiter.limit(RATE_LIMITS["transaction_sync"])
def sync_transaction(
    request: Request,
    transaction_id: str,
    _: AdminDep,
    company_id: CompanyIdDep,
    svc: TransactionServiceDep,
):
    """Refresh the status from Cielo (expires stale pending charges without calling it)."""
    return svc.sync_transaction(company_id, transaction_id)


@router.post("/{transaction_id}/refund", response_model=TransactionOut)
def refund_transaction(
    transaction_id: str,
    data: RefundRequest,
    _: AdminDep,
    company_id: CompanyIdDep,
    svc: TransactionServiceDep,
):
    return svc.refund_transaction(company_id, transaction_id, data.reason, amount=data.amount)
