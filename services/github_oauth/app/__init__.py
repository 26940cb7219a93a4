"""GitHub OAuth gateway linking EVM wallets to GitHub accounts."""
