"""Static registry of known EVM chains."""

from collections.abc import Iterable
from dataclasses import dataclass

from ._errors import ChainNotFound


@dataclass(frozen=True)
class NativeCurrency:
    """Describes the native currency of a chain."""

    name: str
    symbol: str
    decimals: int = 18


@dataclass(frozen=True)
class ChainDescriptor:
    """A known chain."""

    id: str
    """The registry key (e.g. ``"mainnet"``)."""

    chain_id: int
    """The EIP-155 chain id, used when signing transactions."""

    name: str
    """Human-readable name."""

    native_currency: NativeCurrency

    rpc_urls: tuple[str, ...]
    """Public RPC endpoints, the first one being the default."""

    @property
    def default_rpc_url(self) -> None | str:
        """Returns the RPC URL seeded into the transport when this chain is selected."""
        return self.rpc_urls[0] if self.rpc_urls else None


class ChainRegistry:
    """An immutable, ordered collection of chains."""

    def __init__(self, chains: Iterable[ChainDescriptor]):
        chains = tuple(chains)
        ids = [chain.id for chain in chains]
        if len(ids) != len(set(ids)):
            raise ValueError("Chain ids in a registry must be unique")
        self._chains = chains
        self._by_id = {chain.id: chain for chain in chains}

    def list_chains(self) -> tuple[ChainDescriptor, ...]:
        """Returns all the chains in registration order."""
        return self._chains

    def resolve(self, chain_id: str) -> ChainDescriptor:
        """Returns the chain with the given registry id, or raises :py:class:`ChainNotFound`."""
        try:
            return self._by_id[chain_id]
        except KeyError:
            raise ChainNotFound(chain_id) from None

    def __contains__(self, chain_id: object) -> bool:
        return chain_id in self._by_id

    def __len__(self) -> int:
        return len(self._chains)


_ETHER = NativeCurrency(name="Ether", symbol="ETH")
_SEPOLIA_ETHER = NativeCurrency(name="Sepolia Ether", symbol="ETH")

BUILTIN_CHAINS = ChainRegistry(
    [
        ChainDescriptor("mainnet", 1, "Ethereum", _ETHER, ("https://eth.merkle.io",)),
        ChainDescriptor(
            "sepolia", 11155111, "Sepolia", _SEPOLIA_ETHER, ("https://sepolia.drpc.org",)
        ),
        ChainDescriptor(
            "holesky",
            17000,
            "Holesky",
            NativeCurrency(name="Holesky Ether", symbol="ETH"),
            ("https://ethereum-holesky-rpc.publicnode.com",),
        ),
        ChainDescriptor(
            "polygon",
            137,
            "Polygon",
            NativeCurrency(name="POL", symbol="POL"),
            ("https://polygon-rpc.com",),
        ),
        ChainDescriptor(
            "polygonAmoy",
            80002,
            "Polygon Amoy",
            NativeCurrency(name="POL", symbol="POL"),
            ("https://rpc-amoy.polygon.technology",),
        ),
        ChainDescriptor(
            "arbitrum", 42161, "Arbitrum One", _ETHER, ("https://arb1.arbitrum.io/rpc",)
        ),
        ChainDescriptor(
            "arbitrumSepolia",
            421614,
            "Arbitrum Sepolia",
            _SEPOLIA_ETHER,
            ("https://sepolia-rollup.arbitrum.io/rpc",),
        ),
        ChainDescriptor("optimism", 10, "OP Mainnet", _ETHER, ("https://mainnet.optimism.io",)),
        ChainDescriptor(
            "optimismSepolia",
            11155420,
            "OP Sepolia",
            _SEPOLIA_ETHER,
            ("https://sepolia.optimism.io",),
        ),
        ChainDescriptor("base", 8453, "Base", _ETHER, ("https://mainnet.base.org",)),
        ChainDescriptor(
            "baseSepolia", 84532, "Base Sepolia", _SEPOLIA_ETHER, ("https://sepolia.base.org",)
        ),
        ChainDescriptor(
            "bsc",
            56,
            "BNB Smart Chain",
            NativeCurrency(name="BNB", symbol="BNB"),
            ("https://bsc-dataseed1.bnbchain.org",),
        ),
        ChainDescriptor(
            "avalanche",
            43114,
            "Avalanche",
            NativeCurrency(name="Avalanche", symbol="AVAX"),
            ("https://api.avax.network/ext/bc/C/rpc",),
        ),
        ChainDescriptor(
            "gnosis",
            100,
            "Gnosis",
            NativeCurrency(name="xDAI", symbol="XDAI"),
            ("https://rpc.gnosischain.com",),
        ),
        ChainDescriptor("anvil", 31337, "Anvil", _ETHER, ("http://127.0.0.1:8545",)),
    ]
)


def list_chains() -> tuple[ChainDescriptor, ...]:
    """Returns the built-in chains."""
    return BUILTIN_CHAINS.list_chains()


def resolve(chain_id: str) -> ChainDescriptor:
    """Looks up a built-in chain by its registry id."""
    return BUILTIN_CHAINS.resolve(chain_id)
