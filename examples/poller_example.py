import asyncio

from hookrelay import Poller

def on_frontdoor(identifier, payload):
    print("Received:", identifier, payload)

async def main():
    async with Poller("localhost", 8080) as poller:
        poller.add_handler("frontdoor", on_frontdoor)
        # poll every registered handler identifier every 500 ms
        poller.start_many(500)
        print("Awaiting events... (press Ctrl+C to exit)")
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            print("Stopped.")

if __name__ == "__main__":
    asyncio.run(main())
