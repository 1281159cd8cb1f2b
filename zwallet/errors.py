"""Error kinds surfaced to the top level of every command."""


class WalletError(Exception):
    """Base class for failures that terminate a command."""


class IdentityFileInvalid(WalletError):
    def __init__(self, path, reason: str = "no identities found"):
        super().__init__(f"Invalid identity file {path}: {reason}")
        self.path = path


class InvalidMnemonic(WalletError):
    def __init__(self, reason: str = "invalid mnemonic phrase"):
        super().__init__(f"Invalid mnemonic: {reason}")


class ConfigAlreadyExists(WalletError):
    def __init__(self, path):
        super().__init__(
            f"Wallet config already exists at {path}; "
            "initialize into a new wallet directory instead"
        )
        self.path = path


class WalletNotInitialized(WalletError):
    def __init__(self, path):
        super().__init__(f"No wallet config found at {path}; run `init` first")
        self.path = path


class InvalidTreeState(WalletError):
    def __init__(self, reason: str | None = None):
        message = "Invalid TreeState received from server"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class RemoteError(WalletError):
    """The chain service answered with an error or an unusable payload."""


class NetworkMismatch(WalletError):
    def __init__(self, expected, found):
        super().__init__(
            f"Wallet data belongs to the {found} network, not {expected}"
        )


class NoAccounts(WalletError):
    def __init__(self):
        super().__init__("Wallet contains no accounts.")


class AmbiguousAccount(WalletError):
    def __init__(self, count: int):
        super().__init__(
            f"More than one account is available ({count}); "
            "please specify the account UUID."
        )


class AccountNotFound(WalletError):
    def __init__(self, account_id):
        super().__init__(f"Account missing: {account_id}")
        self.account_id = account_id


class AccountMissingFromSummary(WalletError):
    def __init__(self, account_id):
        super().__init__(
            f"Account {account_id} is missing from the wallet summary"
        )
        self.account_id = account_id
