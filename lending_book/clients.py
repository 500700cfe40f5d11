"""
Client Management Module

Manages borrower profiles. The document id is unique across clients, and a
client can only be deleted once none of its loans is ACTIVE.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
import uuid
import re

from .storage import StorageInterface, StorageRecord
from .loans import LoanManager
from .exceptions import ClientHasActiveLoansError, InvalidInputError, NotFoundError
from .logging_config import get_logger, log_action


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


@dataclass
class Client(StorageRecord):
    """Borrower profile"""
    first_name: str
    last_name: str
    document_id: str
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None

    def __post_init__(self):
        if self.email and not re.match(EMAIL_PATTERN, self.email):
            raise InvalidInputError("Invalid email format", {"email": self.email})

    @property
    def full_name(self) -> str:
        """Get client's full name"""
        return f"{self.first_name} {self.last_name}"


def _required(value: Optional[str], field_name: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{field_name} is required")
    return str(value).strip()


class ClientManager:
    """
    Client CRUD with unique document ids and guarded deletion
    """

    def __init__(self, storage: StorageInterface, loan_manager: LoanManager):
        self.storage = storage
        self.loan_manager = loan_manager
        self.logger = get_logger("lending_book.clients")
        self.table_name = "clients"

    def create_client(
        self,
        first_name: str,
        last_name: str,
        document_id: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        address: Optional[str] = None
    ) -> Client:
        """
        Create a new client

        Args:
            first_name: Client's first name
            last_name: Client's last name
            document_id: National id or passport number, unique across clients
            phone: Optional phone number
            email: Optional email address
            address: Optional postal address

        Returns:
            Created Client object

        Raises:
            InvalidInputError: If a required field is missing or the document id is taken
        """
        first_name = _required(first_name, "First name")
        last_name = _required(last_name, "Last name")
        document_id = _required(document_id, "Document id")

        if self.get_client_by_document(document_id):
            raise InvalidInputError(
                "A client with this document id already exists",
                {"document_id": document_id}
            )

        now = datetime.now(timezone.utc)
        client = Client(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            first_name=first_name,
            last_name=last_name,
            document_id=document_id,
            phone=phone or None,
            email=email or None,
            address=address or None
        )

        self.storage.save(self.table_name, client.id, client.to_dict())

        log_action(
            self.logger, "info", "Client created",
            action="create_client", resource=f"client:{client.id}",
            extra={"full_name": client.full_name, "document_id": document_id}
        )

        return client

    def get_client(self, client_id: str) -> Optional[Client]:
        """Get client by ID"""
        data = self.storage.load(self.table_name, client_id)
        if data:
            return Client.from_dict(data)
        return None

    def require_client(self, client_id: str) -> Client:
        client = self.get_client(client_id)
        if not client:
            raise NotFoundError("client", client_id)
        return client

    def get_client_by_document(self, document_id: str) -> Optional[Client]:
        """Get client by document id"""
        matches = self.storage.find(self.table_name, {"document_id": document_id})
        if matches:
            return Client.from_dict(matches[0])
        return None

    def list_clients(self) -> List[Client]:
        """All clients, newest first"""
        clients = [Client.from_dict(data) for data in self.storage.load_all(self.table_name)]
        clients.sort(key=lambda c: c.created_at, reverse=True)
        return clients

    def update_client(self, client_id: str, **changes: Any) -> Client:
        """
        Update client information

        Only fields passed with a non-empty value are changed.

        Raises:
            NotFoundError: If the client does not exist
            InvalidInputError: If the new document id belongs to another client
        """
        client = self.require_client(client_id)
        updatable = ("first_name", "last_name", "document_id", "phone", "email", "address")

        unknown = set(changes) - set(updatable)
        if unknown:
            raise InvalidInputError(f"Unknown client fields: {', '.join(sorted(unknown))}")

        new_document = changes.get("document_id")
        if new_document and new_document != client.document_id:
            other = self.get_client_by_document(new_document)
            if other and other.id != client.id:
                raise InvalidInputError(
                    "A client with this document id already exists",
                    {"document_id": new_document}
                )

        old_data: Dict[str, Any] = {}
        for name in updatable:
            value = changes.get(name)
            if value:
                old_data[name] = getattr(client, name)
                setattr(client, name, value)

        # Re-run field validation on the merged record
        client = Client.from_dict(client.to_dict())
        client.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.table_name, client.id, client.to_dict())

        log_action(
            self.logger, "info", "Client updated",
            action="update_client", resource=f"client:{client.id}",
            extra={"changed": sorted(old_data)}
        )

        return client

    def delete_client(self, client_id: str) -> None:
        """
        Delete a client together with its non-active loans and their installments

        Raises:
            NotFoundError: If the client does not exist
            ClientHasActiveLoansError: If any of its loans is ACTIVE
        """
        self.require_client(client_id)
        loans = self.loan_manager.loans_for_client(client_id)

        active = [loan for loan in loans if loan.is_active]
        if active:
            raise ClientHasActiveLoansError(client_id, len(active))

        with self.storage.atomic():
            for loan in loans:
                self.loan_manager.delete_loan(loan.id)
            self.storage.delete(self.table_name, client_id)

        log_action(
            self.logger, "info", "Client deleted",
            action="delete_client", resource=f"client:{client_id}",
            extra={"loans_deleted": len(loans)}
        )
