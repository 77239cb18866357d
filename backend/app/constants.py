"""Application constants to avoid magic strings."""


class Currency:
    """Common currency constants."""

    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    ETH = "ETH"
    BTC = "BTC"


# Currencies routed to the crypto exchange rate provider
CRYPTO_CURRENCIES = (Currency.ETH, Currency.BTC)

# Fiat currencies without minor units (ISO 4217 exponent 0)
ZERO_DECIMAL_CURRENCIES = frozenset(
    {"BIF", "CLP", "DJF", "GNF", "ISK", "JPY", "KMF", "KRW", "PYG", "RWF", "UGX", "VND",
     "VUV", "XAF", "XOF", "XPF"}
)

# Fiat currencies with three decimal places
THREE_DECIMAL_CURRENCIES = frozenset({"BHD", "IQD", "JOD", "KWD", "LYD", "OMR", "TND"})

# Base-unit exponent for each crypto network's native currency
CRYPTO_DECIMALS = {
    Currency.ETH: 18,  # wei
    Currency.BTC: 8,  # satoshi
}


class AccountType:
    """Account type constants (bank provider types plus crypto wallets)."""

    DEPOSITORY = "depository"
    CREDIT = "credit"
    LOAN = "loan"
    INVESTMENT = "investment"
    BROKERAGE = "brokerage"
    OTHER = "other"
    CRYPTO_WALLET = "crypto_wallet"


# Account types whose effective balance combines current and available
COMBINED_BALANCE_ACCOUNT_TYPES = frozenset({AccountType.INVESTMENT, AccountType.BROKERAGE})


class CryptoNetwork:
    """Supported blockchain networks."""

    ETHEREUM = "ethereum"
    BITCOIN = "bitcoin"


NETWORK_CURRENCIES = {
    CryptoNetwork.ETHEREUM: Currency.ETH,
    CryptoNetwork.BITCOIN: Currency.BTC,
}


class LinkedAccountEvents:
    """Event names published when linked accounts change."""

    CREATED = "linked-account.created"
    UPDATED = "linked-account.updated"
