"""
Skin Consult Reconciliation Rules v1.0

Registry of machine-vs-self disagreement rules. Each rule is a frozen record:
an applicability predicate over (machine, self) bands, an optional question
set, and a decide function over collected answers.

Answer matching tolerates en-dashes and the >= glyph so "1–2" and "1-2" are
the same answer.

Usage:
    from app.reconcile.rules import RULES, get_rule
"""

from __future__ import annotations

from typing import Dict, List, Optional

from app.reconcile.bands import Band, is_calm, is_elevated
from app.reconcile.models import (
    Answers,
    Outcome,
    Question,
    ReconcileContext,
    Rule,
    acne_category,
    FLAG_BARRIER_REPAIR,
    FLAG_CLOGGED_PORES,
    FLAG_COLOR_PRESS,
    FLAG_MACHINE_TRUSTED,
    FLAG_OPTIMIZE_PRODUCTS,
    FLAG_PREGNANCY_FILTER,
    FLAG_PRODUCT_FILM,
    FLAG_REFER_DERM,
    FLAG_ROUTE_ACNE,
    FLAG_SCALP_ANALYSIS,
    FLAG_SCAR_FOLLOWUP,
    FLAG_SHIFT_TO_MARKS,
    SAFETY_NODULOCYSTIC,
)


RULESET_VERSION = "1.0.0"

YES_NO = ("Yes", "No")


# =============================================================================
# ANSWER HELPERS
# =============================================================================

def _norm(value) -> str:
    return str(value or "").strip().lower().replace("–", "-").replace("≥", ">=")


def _one(answers: Answers, qid: str) -> str:
    value = answers.get(qid)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else ""
    return _norm(value)


def _many(answers: Answers, qid: str) -> List[str]:
    value = answers.get(qid)
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [_norm(v) for v in value]
    return [_norm(value)]


def _yes(answers: Answers, qid: str) -> bool:
    return _one(answers, qid) == "yes"


def _absent_or_calm(band: Optional[Band]) -> bool:
    return band is None or is_calm(band)


# =============================================================================
# MOISTURE
# =============================================================================

def _moisture_dry_normal(answers: Answers, ctx: ReconcileContext) -> Outcome:
    return Outcome(
        scope="Moisture",
        verdict="Machine reads dry, customer feels normal: treat as normal hydration, keep oil control if shine persists.",
        updated_band=Band.BLUE,
        flags=["prefer-machine-for-hydration", "keep-oil-control-if-all-day-shine"],
    )


def _moisture_hydrated_dry(answers: Answers, ctx: ReconcileContext) -> Outcome:
    tight = _yes(answers, "q2")
    flaking = _yes(answers, "q3")
    meds = _many(answers, "q4")
    on_retinoid = any(
        needle in med for med in meds for needle in ("retinoid", "adapalene", "isotretinoin")
    )

    if tight and flaking:
        return Outcome("Moisture", "True dry / compromised barrier (tight and flaking).",
                       Band.RED, [FLAG_BARRIER_REPAIR])
    if tight or flaking or on_retinoid:
        return Outcome("Moisture", "True dry / compromised barrier.", Band.YELLOW, [FLAG_BARRIER_REPAIR])
    return Outcome("Moisture", "Normal hydration, machine reading trusted.", Band.BLUE, [FLAG_MACHINE_TRUSTED])


# =============================================================================
# SEBUM
# =============================================================================

def _sebum_normal_oily(answers: Answers, ctx: ReconcileContext) -> Outcome:
    blotting = _one(answers, "q1")
    shine = _one(answers, "q2")
    film = _yes(answers, "q3") or _yes(answers, "q5")

    frequent = blotting == ">=3x/day"
    all_over = shine == "all over"
    if frequent or all_over:
        band = Band.RED if (frequent and all_over) else Band.YELLOW
        return Outcome("Sebum", "True oily, overrides machine.", band)
    if shine == "t-zone" and blotting == "1-2x/day":
        return Outcome("Sebum", "Combination T-zone.", Band.YELLOW)
    if film:
        return Outcome("Sebum", "Reading affected by product film; treat as oily only with very frequent shine.",
                       flags=[FLAG_PRODUCT_FILM])
    return Outcome("Sebum", "Normal oil per machine; customer not consistently oily.", Band.BLUE)


def _sebum_oily_normal(answers: Answers, ctx: ReconcileContext) -> Outcome:
    shine = _yes(answers, "q1")
    comedones = _yes(answers, "q2")
    heavy_products = _yes(answers, "q3")

    if (shine or comedones) and not heavy_products:
        return Outcome("Sebum", "Oily, machine reading trusted.", Band.RED)
    if (shine or comedones) and heavy_products:
        return Outcome("Sebum", "Combination; product choices add shine.", Band.YELLOW, [FLAG_OPTIMIZE_PRODUCTS])
    if heavy_products:
        return Outcome("Sebum", "Temporary product-induced shine; keep normal.", Band.BLUE, [FLAG_OPTIMIZE_PRODUCTS])
    return Outcome("Sebum", "Normal; machine reading likely a lighting artifact.", Band.GREEN)


# =============================================================================
# ACNE
# =============================================================================

def _acne_machine_acne_customer_none(answers: Answers, ctx: ReconcileContext) -> Outcome:
    new_bumps = _one(answers, "q1")
    flat_marks = _yes(answers, "q2")
    monthly = _yes(answers, "q3")
    comedones = _yes(answers, "q4")

    if new_bumps == "1-2" or monthly:
        flags = [acne_category("Hormonal")] if monthly else []
        return Outcome("Acne", "Mild acne, machine reading trusted.", Band.BLUE, flags)
    if flat_marks and new_bumps in ("none", "1-2"):
        return Outcome("Acne", "Post-acne marks only, no active acne.", Band.GREEN, [FLAG_SHIFT_TO_MARKS])
    if new_bumps == "several" or comedones:
        flags = [acne_category("Comedonal")] if comedones else []
        return Outcome("Acne", "Comedonal or inflammatory acne.", Band.YELLOW, flags)
    return Outcome("Acne", "No clear activity.", Band.GREEN)


def _acne_machine_clear_customer_severe(answers: Answers, ctx: ReconcileContext) -> Outcome:
    inflamed = _one(answers, "q1")
    nodules = _yes(answers, "q2")
    comedones = _one(answers, "q3")
    triggers = _yes(answers, "q4")
    pregnant = _yes(answers, "q5") or ctx.is_pregnant()

    few_inflamed = inflamed in ("none", "1-5")
    few_comedones = comedones in ("none", "<10")

    if nodules or inflamed == ">=15":
        return Outcome("Acne", "Moderate to severe acne; refer to dermatologist.", Band.RED,
                       [FLAG_REFER_DERM], [SAFETY_NODULOCYSTIC])
    if inflamed == "6-15":
        return Outcome("Acne", "Mild to moderate acne; start actives, follow up in 4 weeks.", Band.YELLOW,
                       [acne_category("Mild-Inflammatory")])
    if inflamed == "1-5" and few_comedones:
        return Outcome("Acne", "Mild acne; gentle active routine.", Band.BLUE)
    if few_inflamed and comedones in ("10-20", ">=20"):
        return Outcome("Acne", "Comedonal acne; exfoliation focus.", Band.YELLOW, [acne_category("Comedonal")])
    if few_inflamed and few_comedones and triggers:
        return Outcome("Acne", "Situational acne; trigger control plus targeted routine.", Band.BLUE,
                       [acne_category("Situational")])
    if pregnant:
        return Outcome("Acne", "Acne under pregnancy filter; restrict high-risk actives.", Band.BLUE,
                       safety=[FLAG_PREGNANCY_FILTER])
    return Outcome("Acne", "Clear skin; possible machine false negative, confirm later.", Band.GREEN)


# =============================================================================
# PORES
# =============================================================================

def _pores_enlarged_not_concerned(answers: Answers, ctx: ReconcileContext) -> Outcome:
    visible = _yes(answers, "q1")
    blackheads = _yes(answers, "q2")
    high_oil = _one(answers, "q3") == "high"

    if visible and blackheads and high_oil:
        return Outcome("Pores", "Enlarged and clogged, machine reading trusted.", Band.YELLOW)
    if visible or blackheads or high_oil:
        return Outcome("Pores", "Clogging tendency, machine reading trusted.", Band.BLUE)
    return Outcome("Pores", "Cosmetic only; deprioritise.", Band.GREEN)


def _pores_normal_concerned(answers: Answers, ctx: ReconcileContext) -> Outcome:
    heavy_makeup = _yes(answers, "q2")
    blackheads = _yes(answers, "q3")

    if heavy_makeup or blackheads:
        return Outcome("Pores", "Clogging tendency; add pore care.", Band.YELLOW)
    if _yes(answers, "q1"):
        return Outcome("Pores", "Normal; set expectations.", Band.GREEN)
    return Outcome("Pores", "Mild pore care only.", Band.BLUE)


# =============================================================================
# TEXTURE
# =============================================================================

def _texture_smooth_aging(answers: Answers, ctx: ReconcileContext) -> Outcome:
    age = ctx.resolved_age()
    if age is not None and age > 35:
        return Outcome("Texture", "Age-related concern; start anti-aging routine.", Band.YELLOW)
    return Outcome("Texture", "No aging indication by age; mild brightening only.", Band.BLUE)


def _texture_smooth_bumpy(answers: Answers, ctx: ReconcileContext) -> Outcome:
    meaning = _one(answers, "q1")
    area = _one(answers, "q2")

    if meaning.startswith("pimples"):
        return Outcome("Texture", "Bumps are breakouts; route to acne questions.", flags=[FLAG_ROUTE_ACNE])
    if meaning.startswith("tiny") and area == "forehead":
        return Outcome("Texture", "Possible scalp-origin bumps; consider scalp analysis.", flags=[FLAG_SCALP_ANALYSIS])
    if meaning.startswith("tiny") and area in ("chin", "cheeks", "all over"):
        return Outcome("Texture", "Oil-related bumps (clogged pores).", Band.YELLOW, [FLAG_CLOGGED_PORES])
    return Outcome("Texture", "Mild unevenness; texture polish only.", Band.BLUE)


def _texture_rough_smooth(answers: Answers, ctx: ReconcileContext) -> Outcome:
    area = _one(answers, "q1")
    scars = _yes(answers, "q2")
    over_forty = _yes(answers, "q3")

    if area == "forehead":
        return Outcome("Texture", "Check for oily scalp or dandruff; scalp analysis.", flags=[FLAG_SCALP_ANALYSIS])
    if area in ("cheeks", "chin", "other"):
        return Outcome("Texture", "Oil-related bumps (clogged pores).", Band.YELLOW, [FLAG_CLOGGED_PORES])
    if scars:
        return Outcome("Texture", "Acne scars present; branch to scar type.", flags=[FLAG_SCAR_FOLLOWUP])
    if area == "no" and over_forty:
        return Outcome("Texture", "Anti-aging routine.", Band.YELLOW)
    return Outcome("Texture", "No texture action needed.", Band.GREEN)


# =============================================================================
# PIGMENTATION
# =============================================================================

def _pigment_machine_yes_customer_no(answers: Answers, ctx: ReconcileContext) -> Outcome:
    return Outcome("Pigmentation", "Pigmentation present; set to yellow and educate with the color-press test.",
                   Band.YELLOW, [FLAG_COLOR_PRESS])


def _pigment_customer_brown(answers: Answers, ctx: ReconcileContext) -> Outcome:
    return Outcome("Pigmentation", "Customer perceives brown pigmentation; set yellow and support.", Band.YELLOW)


def _pigment_customer_red(answers: Answers, ctx: ReconcileContext) -> Outcome:
    return Outcome("Pigmentation", "Customer perceives red pigmentation; set yellow and support.", Band.YELLOW)


def _pigment_denied(m: Dict[str, Band], s: Dict[str, Band]) -> bool:
    machine_sees = is_elevated(m.get("pigmentation_brown")) or is_elevated(m.get("pigmentation_red"))
    customer_denies = not s.get("pigmentation_brown_claim") and not s.get("pigmentation_red_claim")
    return machine_sees and customer_denies


# =============================================================================
# REGISTRY
# =============================================================================

RULES = (
    Rule(
        id="moisture_MDry_CNormal",
        scope="Moisture",
        dimension="moisture",
        applicable=lambda m, s: is_elevated(m.get("moisture")) and is_calm(s.get("moisture")),
        decide=_moisture_dry_normal,
    ),
    Rule(
        id="moisture_MHydrated_CDry",
        scope="Moisture",
        dimension="moisture",
        applicable=lambda m, s: is_calm(m.get("moisture")) and is_elevated(s.get("moisture")),
        decide=_moisture_hydrated_dry,
        questions=(
            Question("q2", "Does skin feel tight all day even after moisturizer?", YES_NO),
            Question("q3", "Do you have visible flaking or rough patches?", YES_NO),
            Question("q4", "Current actives or medication in the last 4 weeks?",
                     ("Retinoids", "Isotretinoin", "BPO", "AHA/BHA", "Adapalene", "None"), multi=True),
        ),
    ),
    Rule(
        id="sebum_MNormal_COily",
        scope="Sebum",
        dimension="sebum",
        applicable=lambda m, s: is_calm(m.get("sebum")) and is_elevated(s.get("sebum")),
        decide=_sebum_normal_oily,
        questions=(
            Question("q1", "How often do you blot or wash your face because of oil?",
                     ("Never", "1–2x/day", "≥3x/day")),
            Question("q2", "Is shine localized to the T-zone?", ("T-zone", "All over", "No shine")),
            Question("q3", "Used mattifying products, clay masks or oil-absorbing sheets in the last 24h?", YES_NO),
            Question("q5", "Any mattifying primer or powder used in the last 8h?", YES_NO),
        ),
    ),
    Rule(
        id="sebum_MOily_CNormal",
        scope="Sebum",
        dimension="sebum",
        applicable=lambda m, s: is_elevated(m.get("sebum")) and is_calm(s.get("sebum")),
        decide=_sebum_oily_normal,
        questions=(
            Question("q1", "Do you see visible shine within 2–4h after cleansing?", YES_NO),
            Question("q2", "Do you get frequent blackheads or whiteheads?", YES_NO),
            Question("q3", "Using heavy creams, oils or sunscreens?", YES_NO),
        ),
    ),
    Rule(
        id="acne_MAcne_CNone",
        scope="Acne",
        dimension="acne",
        applicable=lambda m, s: is_elevated(m.get("acne")) and _absent_or_calm(s.get("acne_claim")),
        decide=_acne_machine_acne_customer_none,
        questions=(
            Question("q1", "Any new bumps in the last 2 weeks?", ("None", "1–2", "Several")),
            Question("q2", "Are there red or brown spots without a raised bump?", YES_NO),
            Question("q3", "Do you get monthly breakouts around periods or the jawline?", ("Yes", "No", "NA")),
            Question("q4", "Do you frequently notice tiny bumps, blackheads or whiteheads?", YES_NO),
        ),
    ),
    Rule(
        id="acne_MClear_CModerateSevere",
        scope="Acne",
        dimension="acne",
        applicable=lambda m, s: is_calm(m.get("acne")) and is_elevated(s.get("acne_claim")),
        decide=_acne_machine_clear_customer_severe,
        questions=(
            Question("q1", "How many inflamed (red, swollen, painful) pimples do you currently see?",
                     ("None", "1–5", "6–15", ">=15")),
            Question("q2", "Do you get deep, painful lumps or nodules under the skin?", YES_NO),
            Question("q3", "Do you have visible blackheads or whiteheads?", ("None", "<10", "10–20", ">=20")),
            Question("q4", "Do your breakouts flare with masks, sweat, periods, stress or products?", YES_NO),
            Question("q5", "Are you currently pregnant or breastfeeding?", ("Yes", "No", "NA (male)")),
        ),
    ),
    Rule(
        id="pores_MEnlarged_CNotConcerned",
        scope="Pores",
        dimension="pores",
        applicable=lambda m, s: is_elevated(m.get("pores")) and _absent_or_calm(s.get("pores")),
        decide=_pores_enlarged_not_concerned,
        questions=(
            Question("q1", "Are pores visible at arm's length in a mirror?", YES_NO),
            Question("q2", "Do you get frequent blackheads on the nose or cheeks?", YES_NO),
            Question("q3", "How oily is your skin?", ("Low", "Normal", "High")),
        ),
    ),
    Rule(
        id="pores_MNormal_CConcerned",
        scope="Pores",
        dimension="pores",
        applicable=lambda m, s: is_calm(m.get("pores")) and is_elevated(s.get("pores")),
        decide=_pores_normal_concerned,
        questions=(
            Question("q1", "Is visibility limited to close-up under harsh light?", YES_NO),
            Question("q2", "Do you regularly wear heavy makeup or sunscreen and skip double-cleansing?", YES_NO),
            Question("q3", "Blackheads present on the nose or chin?", YES_NO),
        ),
    ),
    Rule(
        id="texture_MSmooth_CAging",
        scope="Texture",
        dimension="texture",
        applicable=lambda m, s: is_calm(m.get("texture")) and is_elevated(s.get("texture")),
        decide=_texture_smooth_aging,
    ),
    Rule(
        id="texture_MSmooth_CBumpy",
        scope="Texture",
        dimension="texture",
        applicable=lambda m, s: is_calm(m.get("texture")),
        decide=_texture_smooth_bumpy,
        questions=(
            Question("q1", "When you say \"bumpy\", do you mean:",
                     ("Pimples / breakouts", "Tiny uneven dots (not pimples)", "Just feels uneven to touch")),
            Question("q2", "Where do you notice this most?", ("Forehead", "Chin", "Cheeks", "All over")),
        ),
    ),
    Rule(
        id="texture_MRough_CSmooth",
        scope="Texture",
        dimension="texture",
        applicable=lambda m, s: is_elevated(m.get("texture")),
        decide=_texture_rough_smooth,
        questions=(
            Question("q1", "Do you notice unevenness (tiny bumps) in particular areas?",
                     ("Cheeks", "Chin", "Forehead", "Other", "No")),
            Question("q2", "Do you have old acne scars or marks that haven't faded?", YES_NO),
            Question("q3", "Is your age above 40?", YES_NO),
        ),
    ),
    Rule(
        id="pigment_MYes_CNo",
        scope="Pigmentation",
        dimension="pigmentation_brown",
        applicable=_pigment_denied,
        decide=_pigment_machine_yes_customer_no,
    ),
    Rule(
        id="pigment_MNone_CBrown",
        scope="Pigmentation",
        dimension="pigmentation_brown",
        applicable=lambda m, s: is_calm(m.get("pigmentation_brown")) and is_elevated(s.get("pigmentation_brown_claim")),
        decide=_pigment_customer_brown,
    ),
    Rule(
        id="pigment_MNone_CRed",
        scope="Pigmentation",
        dimension="pigmentation_red",
        applicable=lambda m, s: is_calm(m.get("pigmentation_red")) and is_elevated(s.get("pigmentation_red_claim")),
        decide=_pigment_customer_red,
    ),
)

_RULES_BY_ID = {rule.id: rule for rule in RULES}


def get_rule(rule_id: str) -> Optional[Rule]:
    return _RULES_BY_ID.get(rule_id)
