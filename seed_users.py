import asyncio
from sqlmodel import select
from brickbook.db.main import async_session_maker, init_db
from brickbook.auth.models import User
from brickbook.utils.auth import generate_password_hash

async def create_user(email: str, name: str, password: str, company: str = None):
    await init_db()

    async with async_session_maker() as session:
        email = email.lower()

        statement = select(User).where(User.email == email)
        result = await session.exec(statement)
        existing_user = result.first()

        if existing_user:
            print(f"Error: User with email '{email}' already exists.")
            return

        new_user = User(
            email=email,
            name=name,
            company=company,
            password_hash=generate_password_hash(password),
        )

        session.add(new_user)
        try:
            await session.commit()
            await session.refresh(new_user)
            print("Successfully created user!")
            print(f"Email: {new_user.email}")
            print(f"Name: {new_user.name}")
            print(f"Company: {new_user.company}")
            print(f"User ID: {new_user.user_id}")
        except Exception as e:
            await session.rollback()
            print(f"Failed to create user: {e}")

if __name__ == "__main__":
    import sys

    if len(sys.argv) in (4, 5):
        # python seed_users.py <email> <name> <password> [company]
        asyncio.run(create_user(*sys.argv[1:]))
    else:
        print("Usage: python seed_users.py <email> <name> <password> [company]")
        print("Example: python seed_users.py owner@dealer.in 'Ravi Kumar' mysecretpassword 'Kumar Bricks'")
