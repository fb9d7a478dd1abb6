"""
Bill Ledger Verification Script

Verifies data integrity of the Excel bill ledger.
Run from project root: python scripts/verify.py

Version: 1.0.0
"""

import os
import sys
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd  # noqa: E402

from snappy_serve.core.config import get_settings  # noqa: E402

settings = get_settings()
EXCEL_FILE = os.path.join(settings.data_directory, settings.bill_ledger_filename)


def verify_ledger() -> bool:
    """Verify the bill ledger after a simulation."""

    print("=" * 60)
    print("🔍 BILL LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {EXCEL_FILE}")
    print("=" * 60)

    if not os.path.exists(EXCEL_FILE):
        print("\n❌ Ledger file not found!")
        print("   Enable BILL_EXPORT_ENABLED and run: python scripts/simulate.py")
        return False

    try:
        df = pd.read_excel(EXCEL_FILE, engine='openpyxl')
        print("\n✅ File loaded successfully!")
    except Exception as e:
        print(f"\n❌ Could not read ledger: {e}")
        return False

    print("\n📊 STATISTICS:")
    print(f"   Total Bills: {len(df)}")

    required = ['bill_id', 'order_id', 'customer_name', 'total']
    missing = [col for col in required if col not in df.columns]
    if missing:
        print(f"\n⚠️ Missing Columns: {missing}")
        return False
    print("\n✅ All required columns present")

    # Ad-hoc bills have no order id
    order_ids = df['order_id'].dropna()
    duplicates = order_ids.duplicated().sum()
    if duplicates > 0:
        print(f"\n⚠️ {duplicates} orders billed more than once!")
    else:
        print("✅ No order billed twice")

    print("\n💰 REVENUE:")
    print(f"   Total: {df['total'].sum()}")
    if len(df) > 0:
        print(f"   Average: {df['total'].mean():.2f}")

    print("\n📋 RECENT BILLS:")
    print("-" * 60)
    if len(df) > 0:
        print(df[required].tail(5).to_string(index=False))

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE")
    print("=" * 60)

    return duplicates == 0


if __name__ == "__main__":
    sys.exit(0 if verify_ledger() else 1)
