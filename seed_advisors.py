#!/usr/bin/env python3
"""
Seed the advisor registry with sample SEBI-registered advisors
"""

import argparse
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from fraudshield.config import settings
from fraudshield.database import SessionLocal, init_db
from fraudshield.models import Advisor

SAMPLE_ADVISORS = [
    {
        "name": "Rajesh Kumar Sharma",
        "registration_number": "INH000001234",
        "status": "active",
        "firm": "SecureWealth Financial Advisors",
        "email": "rajesh.sharma@securewealth.in",
        "phone": "+91-9876543210",
        "street": "123 Business Park",
        "city": "Mumbai",
        "state": "Maharashtra",
        "pincode": "400001",
        "certifications": ["CFP", "CFA", "SEBI Investment Advisor"],
        "specializations": ["Equity Investments", "Mutual Funds", "Tax Planning"],
        "registration_date": date(2018, 3, 15),
    },
    {
        "name": "Priya Singh",
        "registration_number": "INH000002345",
        "status": "active",
        "firm": "WealthMax Advisory Services",
        "email": "priya.singh@wealthmax.in",
        "phone": "+91-9876543211",
        "street": "456 Financial District",
        "city": "Bangalore",
        "state": "Karnataka",
        "pincode": "560001",
        "certifications": ["CFP", "SEBI Investment Advisor"],
        "specializations": ["Portfolio Management", "Retirement Planning", "Insurance"],
        "registration_date": date(2019, 7, 22),
    },
    {
        "name": "Amit Patel",
        "registration_number": "INH000003456",
        "status": "suspended",
        "firm": "InvestSmart Solutions",
        "email": "amit.patel@investsmart.in",
        "phone": "+91-9876543212",
        "street": "789 Trade Center",
        "city": "Ahmedabad",
        "state": "Gujarat",
        "pincode": "380001",
        "certifications": ["SEBI Investment Advisor"],
        "specializations": ["Stock Market", "Derivatives"],
        "registration_date": date(2017, 11, 8),
    },
    {
        "name": "Deepika Gupta",
        "registration_number": "INH000004567",
        "status": "active",
        "firm": "FinanceFirst Advisory",
        "email": "deepika.gupta@financefirst.in",
        "phone": "+91-9876543213",
        "street": "321 Corporate Avenue",
        "city": "Delhi",
        "state": "Delhi",
        "pincode": "110001",
        "certifications": ["CFA", "CFP", "SEBI Investment Advisor", "FRM"],
        "specializations": ["Alternative Investments", "Real Estate", "Commodities"],
        "registration_date": date(2020, 1, 10),
    },
    {
        "name": "Sandeep Joshi",
        "registration_number": "INH000005678",
        "status": "active",
        "firm": "MoneyWise Consultants",
        "email": "sandeep.joshi@moneywise.in",
        "phone": "+91-9876543214",
        "street": "654 Finance Hub",
        "city": "Pune",
        "state": "Maharashtra",
        "pincode": "411001",
        "certifications": ["CFP", "SEBI Investment Advisor"],
        "specializations": ["Financial Planning", "Goal-based Investing", "SIP Advisory"],
        "registration_date": date(2019, 4, 18),
    },
    {
        "name": "Kavitha Nair",
        "registration_number": "INH000006789",
        "status": "cancelled",
        "firm": "SmartInvest Advisory",
        "email": "kavitha.nair@smartinvest.in",
        "phone": "+91-9876543215",
        "street": "987 Investment Plaza",
        "city": "Chennai",
        "state": "Tamil Nadu",
        "pincode": "600001",
        "certifications": ["SEBI Investment Advisor"],
        "specializations": ["Mutual Funds", "ELSS"],
        "registration_date": date(2016, 9, 5),
    },
]


def seed_advisors(db, advisors=SAMPLE_ADVISORS, replace=True):
    """Insert sample advisors, clearing existing rows first when replace=True"""
    if replace:
        db.query(Advisor).delete()

    rows = [Advisor(**data) for data in advisors]
    db.add_all(rows)
    db.commit()
    return rows


def main():
    parser = argparse.ArgumentParser(description='Seed the FraudShield advisor registry')
    parser.add_argument('--keep-existing', action='store_true',
                        help='Append instead of replacing existing advisors')
    args = parser.parse_args()

    print(f"Seeding advisors into {settings.DATABASE_URL}...")
    init_db()

    db = SessionLocal()
    try:
        rows = seed_advisors(db, replace=not args.keep_existing)
        print(f"✓ Seeded {len(rows)} advisors:")
        for advisor in rows:
            print(f"   📋 {advisor.name} ({advisor.registration_number}) - {advisor.status}")

        print("\nAdvisor Summary:")
        print(f"   📊 Total: {len(rows)}")
        for status in ('active', 'suspended', 'cancelled'):
            print(f"   {status.capitalize()}: {sum(1 for a in rows if a.status == status)}")
    except SQLAlchemyError as e:
        db.rollback()
        print(f"✗ Seeding failed: {e}")
        return False
    finally:
        db.close()

    return True


if __name__ == "__main__":
    main()
