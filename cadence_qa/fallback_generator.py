"""
Fallback Generator
==================

Turns a free-text request into a guaranteed-working contract when model
generation cannot produce acceptable code.

Pipeline:
1. Score the prompt against per-category keyword patterns
2. Infer complexity and a feature set
3. Pick the best guaranteed-working template of that category
4. Substitute the contract name and prepend a provenance comment

Templates are only renamed, never rewritten. Anything that goes wrong
degrades to a minimal emergency contract; generation never raises.
"""

import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from .models import (
    Complexity,
    ContractCategory,
    ContractType,
    FallbackGenerationResult,
    FallbackTemplate,
    GenerationContext,
)
from .telemetry import PipelineTelemetry
from .text_utils import mask_comments


TEMPLATES_DIR = Path(__file__).parent / "templates"
DEFAULT_CONTRACT_NAME = "MyContract"

# Checked in this order; a later category must score strictly higher to win
_CATEGORY_PATTERNS = [
    (ContractCategory.NFT, [
        r'\b(nft|non.?fungible|collectible|art|digital.?asset|collection)\b',
        r'\b(mint|metadata|unique|token)\b',
        r'\b(erc.?721|erc721)\b',
    ]),
    (ContractCategory.FUNGIBLE_TOKEN, [
        r'\b(fungible|coin|currency|token)\b',
        r'\b(transfer|balance|supply|mint|burn|vault)\b',
        r'\b(erc.?20|erc20)\b',
    ]),
    (ContractCategory.MARKETPLACE, [
        r'\b(marketplace|market|trading|buy|sell|auction)\b',
        r'\b(listing|purchase|bid|offer|trade)\b',
        r'\b(commission|fee|royalty)\b',
    ]),
    (ContractCategory.DAO, [
        r'\b(dao|governance|voting|proposal)\b',
        r'\b(vote|ballot|decision|consensus)\b',
        r'\b(member|stakeholder|community)\b',
    ]),
    (ContractCategory.DEFI, [
        r'\b(defi|staking|yield|farming|liquidity)\b',
        r'\b(pool|swap|exchange|lending|borrowing)\b',
        r'\b(reward|interest|apy|apr)\b',
    ]),
    (ContractCategory.UTILITY, [
        r'\b(utility|tool|helper|service)\b',
        r'\b(multi.?sig|multisig|wallet|escrow)\b',
        r'\b(oracle|bridge|proxy)\b',
    ]),
]

# Explicit complexity words, checked from most to least complex
_COMPLEXITY_WORDS = [
    (Complexity.ADVANCED, ["advanced", "complex", "sophisticated", "enterprise", "custom", "multi"]),
    (Complexity.INTERMEDIATE, ["standard", "complete", "full", "comprehensive"]),
    (Complexity.SIMPLE, ["basic", "simple", "minimal", "easy", "starter"]),
]

_FEATURE_PATTERNS = {
    ContractCategory.NFT: [
        r'\b(royalt(y|ies)|royalty)\b',
        r'\b(metadata|attributes)\b',
        r'\b(batch.?mint|bulk.?mint)\b',
        r'\b(reveal|hidden)\b',
    ],
    ContractCategory.FUNGIBLE_TOKEN: [
        r'\b(burn|burning)\b',
        r'\b(pause|pausable)\b',
        r'\b(cap|capped|limit)\b',
        r'\b(admin|owner)\b',
    ],
    ContractCategory.MARKETPLACE: [
        r'\b(auction|bidding)\b',
        r'\b(royalt(y|ies)|royalty)\b',
        r'\b(escrow)\b',
        r'\b(bundle|batch)\b',
    ],
    ContractCategory.DAO: [
        r'\b(timelock|delay)\b',
        r'\b(quorum)\b',
        r'\b(delegation|delegate)\b',
        r'\b(treasury)\b',
    ],
}

_NAME_PATTERNS = [
    re.compile(r'create\s+(?:a\s+)?(\w+)\s+contract', re.IGNORECASE),
    re.compile(r'(\w+)\s+contract', re.IGNORECASE),
    re.compile(r'contract\s+(?:called\s+)?(\w+)', re.IGNORECASE),
    re.compile(r'(\w+)\s+(?:nft|token|collection)', re.IGNORECASE),
]

_IDENTIFIER = re.compile(r'^[A-Za-z_]\w*$')

EMERGENCY_CONTRACT = """// Emergency Fallback Contract
// This is a minimal working contract generated when all other fallback options failed

access(all) contract EmergencyFallback {
    access(all) var initialized: Bool

    access(all) event ContractInitialized()

    access(all) fun initialize() {
        pre {
            !self.initialized: "Contract already initialized"
        }

        self.initialized = true
        emit ContractInitialized()
    }

    access(all) view fun isInitialized(): Bool {
        return self.initialized
    }

    init() {
        self.initialized = false
        emit ContractInitialized()
    }
}
"""

# Minimal per-category contracts; CONTRACT_NAME is substituted on use
_MINIMAL_CONTRACTS = {
    ContractCategory.NFT: """// Minimal NFT Contract - CONTRACT_NAME
import "NonFungibleToken"

access(all) contract CONTRACT_NAME: NonFungibleToken {
    access(all) var totalSupply: UInt64

    access(all) event ContractInitialized()
    access(all) event Withdraw(id: UInt64, from: Address?)
    access(all) event Deposit(id: UInt64, to: Address?)

    access(all) resource NFT: NonFungibleToken.NFT {
        access(all) let id: UInt64

        init(id: UInt64) {
            self.id = id
        }
    }

    access(all) resource Collection: NonFungibleToken.Collection {
        access(all) var ownedNFTs: @{UInt64: {NonFungibleToken.NFT}}

        init() {
            self.ownedNFTs <- {}
        }

        access(NonFungibleToken.Withdraw) fun withdraw(withdrawID: UInt64): @{NonFungibleToken.NFT} {
            let token <- self.ownedNFTs.remove(key: withdrawID) ?? panic("NFT not found")
            emit Withdraw(id: token.id, from: self.owner?.address)
            return <-token
        }

        access(all) fun deposit(token: @{NonFungibleToken.NFT}) {
            let token <- token as! @CONTRACT_NAME.NFT
            emit Deposit(id: token.id, to: self.owner?.address)
            self.ownedNFTs[token.id] <-! token
        }

        access(all) view fun getIDs(): [UInt64] {
            return self.ownedNFTs.keys
        }

        access(all) view fun borrowNFT(_ id: UInt64): &{NonFungibleToken.NFT}? {
            return &self.ownedNFTs[id]
        }

        access(all) fun createEmptyCollection(): @{NonFungibleToken.Collection} {
            return <-create Collection()
        }
    }

    access(all) fun createEmptyCollection(nftType: Type): @{NonFungibleToken.Collection} {
        return <-create Collection()
    }

    init() {
        self.totalSupply = 0
        emit ContractInitialized()
    }
}
""",
    ContractCategory.FUNGIBLE_TOKEN: """// Minimal Token Contract - CONTRACT_NAME
access(all) contract CONTRACT_NAME {
    access(all) var totalSupply: UFix64

    access(all) event TokensInitialized(initialSupply: UFix64)

    access(all) resource Vault {
        access(all) var balance: UFix64

        init(balance: UFix64) {
            self.balance = balance
        }

        access(all) fun withdraw(amount: UFix64): @Vault {
            self.balance = self.balance - amount
            return <-create Vault(balance: amount)
        }

        access(all) fun deposit(from: @Vault) {
            self.balance = self.balance + from.balance
            destroy from
        }
    }

    access(all) fun createEmptyVault(): @Vault {
        return <-create Vault(balance: 0.0)
    }

    init() {
        self.totalSupply = 1000.0
        emit TokensInitialized(initialSupply: self.totalSupply)
    }
}
""",
    ContractCategory.MARKETPLACE: """// Minimal Marketplace Contract - CONTRACT_NAME
access(all) contract CONTRACT_NAME {
    access(all) event ItemListed(id: UInt64, price: UFix64)

    access(all) struct Listing {
        access(all) let id: UInt64
        access(all) let price: UFix64

        init(id: UInt64, price: UFix64) {
            self.id = id
            self.price = price
        }
    }

    access(self) var listings: {UInt64: Listing}

    access(all) fun listItem(id: UInt64, price: UFix64) {
        let listing = Listing(id: id, price: price)
        self.listings[id] = listing
        emit ItemListed(id: id, price: price)
    }

    access(all) view fun getListing(id: UInt64): Listing? {
        return self.listings[id]
    }

    init() {
        self.listings = {}
    }
}
""",
    ContractCategory.UTILITY: """// Minimal Utility Contract - CONTRACT_NAME
access(all) contract CONTRACT_NAME {
    access(all) var value: String

    access(all) event ValueChanged(newValue: String)

    access(all) fun setValue(newValue: String) {
        self.value = newValue
        emit ValueChanged(newValue: newValue)
    }

    access(all) view fun getValue(): String {
        return self.value
    }

    init() {
        self.value = "initialized"
        emit ValueChanged(newValue: self.value)
    }
}
""",
}


@dataclass
class CategoryDetection:
    contract_type: ContractType
    confidence: float
    keywords: List[str] = field(default_factory=list)
    reasoning: str = ""

    def to_dict(self) -> Dict:
        return {
            "contract_type": self.contract_type.to_dict(),
            "confidence": self.confidence,
            "keywords": list(self.keywords),
            "reasoning": self.reasoning,
        }


# ---------------------------------------------------------------------------
# Template catalog
# ---------------------------------------------------------------------------

def _template_from_config(config: dict) -> FallbackTemplate:
    category = ContractCategory.from_string(config.get("category"))
    return FallbackTemplate(
        id=config["id"],
        name=config.get("name", config["id"]),
        description=config.get("description", ""),
        contract_type=ContractType(
            category=category,
            complexity=Complexity(config.get("complexity", "intermediate")),
            features=frozenset(config.get("features") or []),
        ),
        contract_name=config["contract_name"],
        code=config["code"],
        keywords=tuple(k.lower() for k in config.get("keywords") or []),
        guaranteed_working=bool(config.get("guaranteed_working", False)),
    )


@lru_cache(maxsize=None)
def _load_catalog(directory: str) -> Tuple[FallbackTemplate, ...]:
    templates = []
    for path in sorted(Path(directory).glob("*.yaml")):
        try:
            with open(path, "r", encoding="utf8") as f:
                config = yaml.safe_load(f)
            templates.append(_template_from_config(config))
        except Exception as e:
            print(f"  ⚠️  Failed to load template {path.name}: {e}")
    return tuple(templates)


def load_template_catalog(directory: Optional[str] = None) -> Tuple[FallbackTemplate, ...]:
    """
    Load fallback templates from YAML files

    Args:
        directory: Folder of template YAML files (default: bundled templates)

    Returns:
        Tuple of FallbackTemplate; loaded once per directory and cached
    """
    return _load_catalog(str(directory or TEMPLATES_DIR))


# ---------------------------------------------------------------------------
# Quality checks and minimal contracts
# ---------------------------------------------------------------------------

def _balanced(code: str) -> bool:
    counts = {"{": 0, "(": 0, "[": 0}
    closing = {"}": "{", ")": "(", "]": "["}
    for ch in code:
        if ch in counts:
            counts[ch] += 1
        elif ch in closing:
            counts[closing[ch]] -= 1
            if counts[closing[ch]] < 0:
                return False
    return all(v == 0 for v in counts.values())


def validate_fallback_quality(code: str) -> bool:
    """
    Sanity checks every fallback contract must pass: balanced delimiters,
    a contract declaration, an initializer, no `undefined` placeholders and
    at least one access modifier.
    """
    try:
        masked = mask_comments(code or "")
        checks = [
            _balanced(masked),
            re.search(r'access\(all\)\s+contract\s+\w+', masked) is not None,
            re.search(r'\binit\s*\([^)]*\)', masked) is not None,
            re.search(r'\bundefined\b', masked) is None,
            "access(" in masked,
        ]
        return all(checks)
    except Exception as e:
        print(f"  ⚠️  Error validating fallback quality: {e}")
        return False


def _provenance_header(source: str, template_id: str) -> str:
    return (
        f"// This contract was generated using a fallback template ({source})\n"
        f"// Template ID: {template_id}\n"
        "// Generated due to AI generation issues or quality concerns\n"
        "// This is a guaranteed-working implementation that you can customize\n\n"
    )


def create_minimal_contract(name: str = "MinimalContract", category: ContractCategory = ContractCategory.UTILITY) -> str:
    """Smallest working contract for `category` (utility shape for the rest)"""
    code = _MINIMAL_CONTRACTS.get(category, _MINIMAL_CONTRACTS[ContractCategory.UTILITY])
    return re.sub(r'\bCONTRACT_NAME\b', name, code)


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class FallbackGenerator:
    """Template-based contract generation for when the model fails"""

    def __init__(self, catalog: Optional[Tuple[FallbackTemplate, ...]] = None, telemetry: Optional[PipelineTelemetry] = None):
        self.catalog = catalog if catalog is not None else load_template_catalog()
        self.telemetry = telemetry or PipelineTelemetry()
        self._category_patterns = [
            (category, [re.compile(p, re.IGNORECASE) for p in patterns])
            for category, patterns in _CATEGORY_PATTERNS
        ]

    def generate(self, prompt: str, context: Optional[GenerationContext] = None) -> FallbackGenerationResult:
        """
        Generate a fallback contract for `prompt`.

        Args:
            prompt: The user's original request
            context: When given, its already-inferred contract type takes
                     precedence over keyword detection

        Returns:
            FallbackGenerationResult; `success` is False when only the
            emergency contract could be produced
        """
        try:
            if not prompt or not prompt.strip():
                return self._emergency("emergency-fallback", "Emergency fallback due to empty prompt", 0.1)

            detection = self.detect_category(prompt)
            contract_type = detection.contract_type
            if context is not None and context.contract_type.category != ContractCategory.GENERIC:
                contract_type = context.contract_type

            template = self.select_template(contract_type, prompt)
            if template is None:
                return self._emergency(
                    "generic-fallback",
                    f"No template for {contract_type.category.value} contracts, using generic fallback",
                    0.3,
                )

            name = self._safe_contract_name(self.extract_contract_name(prompt) or DEFAULT_CONTRACT_NAME, template)
            code = self.customize(template, name)
            reason = f"Selected {template.name} based on detected type: {contract_type.category.value}"

            template_id, resolved_type = template.id, template.contract_type
            if not validate_fallback_quality(code):
                self.telemetry.warning(f"Template {template.id} failed quality checks, using minimal contract")
                category = contract_type.category if contract_type.category in _MINIMAL_CONTRACTS else ContractCategory.UTILITY
                template_id = f"minimal-{category.value}"
                resolved_type = ContractType(category=category)
                code = _provenance_header(f"minimal {category.value} contract", template_id) + create_minimal_contract(name, category)
                reason = f"Template {template.id} failed quality checks; minimal {category.value} contract used"

            self.telemetry.info(f"Fallback contract from template {template_id} ({name})")
            self.telemetry.increment("fallback.generated")
            return FallbackGenerationResult(
                success=True,
                code=code,
                contract_type=resolved_type,
                template_id=template_id,
                contract_name=name,
                confidence=detection.confidence,
                reason=reason,
            )

        except Exception as e:
            self.telemetry.error(f"Fallback generation failed: {e}")
            return self._emergency("emergency-fallback", f"Emergency fallback due to error: {e}", 0.1)

    def detect_category(self, prompt: str) -> CategoryDetection:
        """Keyword-score the prompt against every category's patterns"""
        best_category = ContractCategory.GENERIC
        best_score = 0
        best_keywords: List[str] = []

        for category, patterns in self._category_patterns:
            keywords = [m.group(0).lower() for p in patterns for m in p.finditer(prompt)]
            if len(keywords) > best_score:
                best_category, best_score, best_keywords = category, len(keywords), keywords

        contract_type = ContractType(
            category=best_category,
            complexity=self.infer_complexity(prompt, best_keywords),
            features=frozenset(self.infer_features(prompt, best_category)),
        )
        return CategoryDetection(
            contract_type=contract_type,
            confidence=min(best_score / 3, 1.0),
            keywords=best_keywords,
            reasoning=f"Detected {best_category.value} contract with {best_score} keyword matches",
        )

    def infer_complexity(self, prompt: str, keywords: List[str]) -> Complexity:
        lowered = prompt.lower()
        for level, words in _COMPLEXITY_WORDS:
            if any(word in lowered for word in words):
                return level

        if len(prompt) > 300 or len(keywords) > 8:
            return Complexity.ADVANCED
        if len(prompt) > 100 or len(keywords) > 4:
            return Complexity.INTERMEDIATE
        return Complexity.SIMPLE

    def infer_features(self, prompt: str, category: ContractCategory) -> List[str]:
        features = []
        for pattern in _FEATURE_PATTERNS.get(category, []):
            for match in re.finditer(pattern, prompt, re.IGNORECASE):
                feature = re.sub(r'ies$', 'y', match.group(0).lower())
                if feature not in features:
                    features.append(feature)
        return features

    def select_template(self, contract_type: ContractType, prompt: str) -> Optional[FallbackTemplate]:
        """
        Highest-scoring guaranteed-working template of the same category.

        Score: +3 exact complexity, +1 adjacent simple/intermediate,
        +2 per shared feature, +1 per template keyword found in the prompt.
        """
        candidates = [
            t for t in self.catalog
            if t.contract_type.category == contract_type.category and t.guaranteed_working
        ]
        if not candidates:
            return None

        lowered = prompt.lower()
        adjacent = {Complexity.SIMPLE, Complexity.INTERMEDIATE}
        best, best_score = None, -1
        for template in candidates:
            score = 0
            if template.complexity == contract_type.complexity:
                score += 3
            elif {template.complexity, contract_type.complexity} == adjacent:
                score += 1
            score += 2 * len(template.contract_type.features & contract_type.features)
            score += sum(1 for k in template.keywords if k in lowered)
            if score > best_score:
                best, best_score = template, score
        return best

    def extract_contract_name(self, prompt: str) -> Optional[str]:
        for pattern in _NAME_PATTERNS:
            match = pattern.search(prompt)
            if match and len(match.group(1)) > 2:
                name = match.group(1)
                return name[0].upper() + name[1:]
        return None

    def customize(self, template: FallbackTemplate, name: str) -> str:
        code = re.sub(rf'\b{re.escape(template.contract_name)}\b', name, template.code)
        return _provenance_header(template.name, template.id) + code

    @staticmethod
    def _safe_contract_name(name: str, template: FallbackTemplate) -> str:
        if not _IDENTIFIER.match(name):
            return DEFAULT_CONTRACT_NAME
        # Avoid clashing with a resource, import or type the template already uses
        if name != template.contract_name and re.search(rf'\b{re.escape(name)}\b', template.code):
            return f"{name}Contract"
        return name

    def _emergency(self, template_id: str, reason: str, confidence: float) -> FallbackGenerationResult:
        self.telemetry.warning(reason)
        self.telemetry.increment("fallback.emergency")
        return FallbackGenerationResult(
            success=False,
            code=EMERGENCY_CONTRACT,
            contract_type=ContractType(),
            template_id=template_id,
            contract_name="EmergencyFallback",
            confidence=confidence,
            reason=reason,
        )


def generate_fallback_contract(
    prompt: str,
    context: Optional[GenerationContext] = None,
    telemetry: Optional[PipelineTelemetry] = None,
) -> FallbackGenerationResult:
    """Module-level wrapper around FallbackGenerator.generate"""
    return FallbackGenerator(telemetry=telemetry).generate(prompt, context)
