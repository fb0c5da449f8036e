"""Minimal demonstration of a streamed chat turn."""

from chat_core import get_default_service

if __name__ == "__main__":
    service = get_default_service()
    question = "Good morning! Could you brighten things up a little?"
    print("User:", question)
    print("Model: ", end="", flush=True)
    for delta in service.send(question):
        print(delta, end="", flush=True)
    print()
    if service.last_outcome is not None:
        print(service.messages[-1].content)
    print("Mood:", service.mood)
