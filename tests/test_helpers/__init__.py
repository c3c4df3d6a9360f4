from .client_creator import (
    create_test_client,
    MINT_ABI,
    TEST_RPC_URL,
    TEST_CHAIN_ID,
    TEST_PRIV_KEY,
    TEST_CONTRACT,
    TEST_RECIPIENT,
    TEST_TOKEN_URI,
)
