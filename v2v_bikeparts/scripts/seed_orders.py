import argparse, asyncio, os, random
from bikeparts.seeding import seed_orders
from bikeparts.services.documents import FirestoreDocumentStore

if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Seed sample orders into Firestore")
    ap.add_argument('--count', type=int, default=int(os.environ.get('SEED_ORDERS_COUNT', '100')))
    ap.add_argument('--seed', type=int, default=None, help='random seed for repeatable data')
    args = ap.parse_args()
    written = asyncio.run(seed_orders(FirestoreDocumentStore(), args.count, random.Random(args.seed)))
    print(f"Seeded {written} orders")
