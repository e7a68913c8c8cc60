import asyncio

import httpx

from llm_relay import ProviderDescriptor, create_client


async def chat_example_default_client():
    openai_llm = create_client(ProviderDescriptor("gpt", configuration={"model": "gpt-4o-mini"}))
    anthropic_llm = create_client(
        ProviderDescriptor("claude", configuration={"model": "claude-3-5-haiku-20241022"})
    )
    gemini_llm = create_client(
        ProviderDescriptor("gemini", configuration={"model": "gemini-2.0-flash-lite"})
    )

    messages = [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "What's your name?"},
    ]

    async with openai_llm, anthropic_llm, gemini_llm:
        print("OpenAI: ", await openai_llm.chat(messages))
        print("Anthropic: ", await anthropic_llm.chat(messages))
        print("Gemini: ", await gemini_llm.chat(messages))


async def stream_example_pass_client():
    # One shared connection pool for every provider
    http = httpx.AsyncClient(timeout=httpx.Timeout(30, connect=5))

    mistral_llm = create_client(
        ProviderDescriptor(
            "mistral",
            configuration={"model": "mistral-small-latest", "temperature": 0.3, "max_tokens": 200},
        ),
        http_client=http,
    )
    cohere_llm = create_client(
        ProviderDescriptor("command", configuration={"model": "command-r"}),
        http_client=http,
    )

    messages = [{"role": "user", "content": "Write a haiku about the sea."}]

    async with http:
        for name, llm in (("Mistral", mistral_llm), ("Cohere", cohere_llm)):
            print(f"{name}: ", end="")
            async for delta in llm.stream(messages):
                print(delta, end="", flush=True)
            print()


if __name__ == "__main__":
    asyncio.run(chat_example_default_client())
    asyncio.run(stream_example_pass_client())
