"""
Client management endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import get_lending_book
from .schemas import CreateClientRequest, UpdateClientRequest, client_to_dict
from ..system import LendingBook


router = APIRouter()


@router.get("")
async def list_clients(book: LendingBook = Depends(get_lending_book)):
    """List clients, newest first, with their loan counts"""
    loans = book.loan_manager.list_loans()
    clients = []
    for client in book.client_manager.list_clients():
        owned = [loan for loan in loans if loan.client_id == client.id]
        result = client_to_dict(client)
        result["loan_count"] = len(owned)
        result["active_loans"] = sum(1 for loan in owned if loan.is_active)
        clients.append(result)
    return {"clients": clients, "total_count": len(clients)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_client(
    request: CreateClientRequest,
    book: LendingBook = Depends(get_lending_book)
):
    """Create a new client"""
    client = book.client_manager.create_client(
        first_name=request.first_name,
        last_name=request.last_name,
        document_id=request.document_id,
        phone=request.phone,
        email=request.email,
        address=request.address
    )
    return client_to_dict(client)


@router.get("/{client_id}")
async def get_client(client_id: str, book: LendingBook = Depends(get_lending_book)):
    """Get client by ID together with its loans"""
    client = book.client_manager.require_client(client_id)
    loans = book.loan_manager.loans_for_client(client_id)

    result = client_to_dict(client)
    result["loans"] = book.portfolio.loan_overviews(loans)
    return result


@router.put("/{client_id}")
async def update_client(
    client_id: str,
    request: UpdateClientRequest,
    book: LendingBook = Depends(get_lending_book)
):
    """Update client information"""
    changes = request.model_dump(exclude_none=True)
    client = book.client_manager.update_client(client_id, **changes)
    return client_to_dict(client)


@router.delete("/{client_id}")
async def delete_client(client_id: str, book: LendingBook = Depends(get_lending_book)):
    """Delete a client that has no active loans"""
    book.client_manager.delete_client(client_id)
    return {"message": "Client deleted successfully"}
