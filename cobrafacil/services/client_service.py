import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional

from cobrafacil.core.auth_dependencies import AccessContext
from cobrafacil.core.exceptions import ConflictError, NotFoundError
from cobrafacil.database.models import Client, Loan, LoanPayment
from cobrafacil.helpers.object_id import parse_object_id
from cobrafacil.helpers.response_builder import serialize_document
from cobrafacil.schemas.client_schema import ClientCreateRequest, ClientUpdateRequest
from cobrafacil.schemas.loan_schema import PaymentStatusEnum
from cobrafacil.services.activity_service import activity_service
from cobrafacil.services.client_score_service import score_icon, score_label
from cobrafacil.services.document_service import document_service

logger = logging.getLogger(__name__)


def only_digits(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return re.sub(r"\D", "", value) or None


def client_to_dict(client: Client) -> Dict[str, Any]:
    data = serialize_document(client)
    data["score_label"] = score_label(client.score)
    data["score_icon"] = score_icon(client.score)
    return data


class ClientService:
    """Borrowers registered by an owner account."""

    async def get_owned_client(self, owner_id: str, client_id: str) -> Client:
        client = await Client.get(parse_object_id(client_id, "Client"))
        if client is None or client.user_id != owner_id:
            raise NotFoundError("Client not found")
        return client

    async def create_client(self, ctx: AccessContext, data: ClientCreateRequest) -> Dict[str, Any]:
        payload = data.model_dump()
        payload["cpf"] = only_digits(payload.get("cpf"))

        if payload["cpf"]:
            existing = await Client.find_one({"user_id": ctx.effective_user_id, "cpf": payload["cpf"]})
            if existing:
                raise ConflictError("A client with this CPF already exists")

        client = Client(user_id=ctx.effective_user_id, **payload)
        await client.insert()
        logger.info(f"Client {client.id} created for owner {ctx.effective_user_id}")

        await activity_service.record(ctx, "client_created", "client", str(client.id), {"full_name": client.full_name})
        return client_to_dict(client)

    async def update_client(self, ctx: AccessContext, client_id: str, data: ClientUpdateRequest) -> Dict[str, Any]:
        client = await self.get_owned_client(ctx.effective_user_id, client_id)
        changes = {field: getattr(data, field) for field in data.model_fields_set}
        if "cpf" in changes:
            changes["cpf"] = only_digits(changes["cpf"])

        for field, value in changes.items():
            setattr(client, field, value)
        client.updated_at = datetime.utcnow()
        await client.save()

        await activity_service.record(ctx, "client_updated", "client", client_id, {"fields": sorted(changes)})
        return client_to_dict(client)

    # Deletes a client that has no open loans, together with its documents
    async def delete_client(self, ctx: AccessContext, client_id: str) -> None:
        client = await self.get_owned_client(ctx.effective_user_id, client_id)

        open_loans = await Loan.find({
            "user_id": ctx.effective_user_id,
            "client_id": client_id,
            "status": {"$ne": PaymentStatusEnum.paid.value},
        }).count()
        if open_loans:
            raise ConflictError(f"Client has {open_loans} open loan(s) and cannot be deleted")

        loans = await Loan.find({"user_id": ctx.effective_user_id, "client_id": client_id}).to_list()
        if loans:
            await LoanPayment.find({"loan_id": {"$in": [str(l.id) for l in loans]}}).delete()
            await Loan.find({"user_id": ctx.effective_user_id, "client_id": client_id}).delete()
        removed = await document_service.delete_client_documents(ctx.effective_user_id, client_id)
        await client.delete()
        logger.info(f"Client {client_id} deleted with {removed} document(s)")

        await activity_service.record(ctx, "client_deleted", "client", client_id, {"full_name": client.full_name})

    async def get_client(self, owner_id: str, client_id: str) -> Dict[str, Any]:
        return client_to_dict(await self.get_owned_client(owner_id, client_id))

    # Lists clients with search by name, phone or CPF
    async def get_clients(
        self,
        owner_id: str,
        search: Optional[str] = None,
        client_type: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"user_id": owner_id}
        if client_type and client_type != "all":
            query["client_type"] = client_type

        if search:
            search_regex = {"$regex": re.escape(search), "$options": "i"}
            conditions = [{"full_name": search_regex}, {"phone": search_regex}]
            digits = only_digits(search)
            if digits:
                conditions.append({"cpf": {"$regex": digits}})
            query["$or"] = conditions

        total = await Client.find(query).count()
        clients = await Client.find(query).sort("full_name").skip(skip).limit(limit).to_list()
        return {
            "data": [client_to_dict(c) for c in clients],
            "total": total,
            "skip": skip,
            "limit": limit,
        }


client_service = ClientService()
