#!/usr/bin/env python3
"""Seed script for the Lending Book Dashboard

Generates demo data:
- 30 clients with realistic names
- 45 loans started over the past year, with a mix of rates and terms
- payments on most past-due installments, leaving some delinquent
- one accrual run so overdue surcharges are populated

Run with: python -m dashboard.seed
"""

from datetime import timedelta
from decimal import Decimal
import random

from lending_book.api.dependencies import get_lending_book
from lending_book.exceptions import LendingBookError
from lending_book.logging_config import setup_logging

# Sample data
FIRST_NAMES = [
    'James', 'Mary', 'John', 'Patricia', 'Robert', 'Jennifer', 'Michael', 'Linda',
    'William', 'Elizabeth', 'David', 'Barbara', 'Richard', 'Susan', 'Joseph', 'Jessica',
    'Thomas', 'Sarah', 'Christopher', 'Karen', 'Charles', 'Nancy', 'Daniel', 'Lisa'
]

LAST_NAMES = [
    'Smith', 'Johnson', 'Williams', 'Brown', 'Jones', 'Garcia', 'Miller', 'Davis',
    'Rodriguez', 'Martinez', 'Hernandez', 'Lopez', 'Gonzalez', 'Wilson', 'Anderson',
    'Thomas', 'Taylor', 'Moore', 'Jackson', 'Martin', 'Lee', 'Perez', 'Thompson'
]

STREETS = ['Main', 'Oak', 'Pine', 'Park', 'First', 'Second', 'Third']

PRINCIPALS = [Decimal('50000'), Decimal('100000'), Decimal('250000'),
              Decimal('500000'), Decimal('1000000')]
RATES = [Decimal('0'), Decimal('12'), Decimal('18'), Decimal('24'), Decimal('36')]
TERMS = [3, 6, 12, 18, 24]


def create_clients(system, count=30):
    """Create demo clients"""
    print(f"Creating {count} clients...")
    clients = []

    for i in range(count):
        first_name = random.choice(FIRST_NAMES)
        last_name = random.choice(LAST_NAMES)
        email = f"{first_name.lower()}.{last_name.lower()}{random.randint(1, 999)}@example.com"
        phone = f"+1-{random.randint(200, 999)}-{random.randint(200, 999)}-{random.randint(1000, 9999)}"
        address = f"{random.randint(100, 9999)} {random.choice(STREETS)} St"

        try:
            client = system.client_manager.create_client(
                first_name=first_name,
                last_name=last_name,
                document_id=f"{random.randint(10000000, 99999999)}-{i}",
                phone=phone,
                email=email,
                address=address
            )
            clients.append(client)
        except LendingBookError as e:
            print(f"Error creating client {i}: {e}")

    print(f"Created {len(clients)} clients successfully")
    return clients


def create_loans(system, clients, today, count=45):
    """Create demo loans with start dates over the past year"""
    print(f"Creating {count} loans...")
    loans = []

    for i in range(count):
        client = random.choice(clients)
        start_date = today - timedelta(days=random.randint(0, 365))

        try:
            overview = system.loan_manager.create_loan(
                client_id=client.id,
                principal=random.choice(PRINCIPALS),
                annual_rate_percent=random.choice(RATES),
                term_count=random.choice(TERMS),
                start_date=start_date
            )
            loans.append(overview)
        except LendingBookError as e:
            print(f"Error creating loan {i}: {e}")

    print(f"Created {len(loans)} loans successfully")
    return loans


def pay_installments(system, loans, today, on_time_ratio=0.85):
    """Pay most installments that are already due, leaving some delinquent"""
    print("Recording payments...")
    paid = 0

    for overview in loans:
        for installment in overview.installments:
            if installment.due_date >= today or random.random() > on_time_ratio:
                continue
            payment_date = min(today, installment.due_date + timedelta(days=random.randint(0, 5)))
            try:
                system.payment_recorder.pay(installment.id, payment_date)
                paid += 1
            except LendingBookError as e:
                print(f"Error paying installment {installment.id}: {e}")

    print(f"Recorded {paid} payments")
    return paid


def main():
    """Main seeding function"""
    setup_logging("WARNING")
    print("📒 Lending Book - Seed Data Generator")
    print("=" * 50)

    system = get_lending_book()
    today = system.clock()

    clients = create_clients(system, 30)
    if not clients:
        print("❌ No clients created, aborting seed process")
        return

    loans = create_loans(system, clients, today, 45)
    paid = pay_installments(system, loans, today)

    result = system.accrual_engine.run(today)
    paid_off = sum(1 for loan in system.loan_manager.list_loans() if not loan.is_active)

    print("=" * 50)
    print("✅ Demo data generation completed!")
    print("📊 Summary:")
    print(f"   • {len(clients)} clients created")
    print(f"   • {len(loans)} loans created ({paid_off} fully repaid)")
    print(f"   • {paid} installments paid")
    print(f"   • {result.updated} installments accrued as overdue")
    print("")
    print("🚀 Start the dashboard with:")
    print("   python -m dashboard")


if __name__ == "__main__":
    main()
