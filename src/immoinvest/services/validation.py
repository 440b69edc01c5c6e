# src/immoinvest/services/validation.py

from typing import Any, Mapping, Optional, Type, TypeVar

from pydantic import ValidationError
from pydantic.alias_generators import to_snake

from immoinvest.domain.deals import (
    SALE_PRICE_KEYS,
    AcquisitionModelParams,
    AcquisitionStrategyInput,
    BasicMultiDeal,
    ComparisonOptions,
    FlipDeal,
    LiquidityInputs,
    MaxPriceQuery,
    MultiDeal,
    NapkinFlipInput,
    NapkinFlipOfferInput,
    NapkinMultiInput,
    NapkinMultiOfferInput,
    QuickFlipScenario,
    QuickMultiScenario,
    Record,
)
from immoinvest.domain.errors import InvalidRangeError, MissingRequiredFieldError

R = TypeVar("R", bound=Record)

MSG_INPUT_REQUIRED = "Les données d'entrée sont requises"
MSG_PURCHASE_PRICE = "Le prix d'achat doit être un nombre positif"
MSG_UNITS = "Le nombre d'unités doit être un entier positif"
MSG_GROSS_REVENUE = "Les revenus bruts doivent être un nombre positif"
MSG_RENOVATION = "Le coût des rénovations doit être un nombre positif ou zéro"


def _to_num(val: Any, field_name: str) -> float:
    """
    Coerce values like:
      - 250000
      - "250000"
      - "250 000 $"
      - "6.5%"
    into float. Percent signs are stripped; scaling is left to the caller.
    """
    if val is None or isinstance(val, bool):
        raise MissingRequiredFieldError(f"Champ numérique requis manquant: {field_name}", field=field_name)
    if isinstance(val, (int, float)):
        return float(val)
    if isinstance(val, str):
        s = val.strip().replace("%", "").replace("$", "").replace(",", "").replace(" ", "")
        try:
            return float(s)
        except ValueError:
            raise MissingRequiredFieldError(
                f"Valeur numérique invalide pour {field_name}: {val!r}", field=field_name
            ) from None
    raise MissingRequiredFieldError(
        f"Type invalide pour {field_name}: {type(val).__name__}", field=field_name
    )


def _to_num_optional(val: Any) -> Optional[float]:
    """Lenient converter: None when missing, blank or garbage."""
    if val is None or isinstance(val, bool):
        return None
    try:
        return _to_num(val, "")
    except MissingRequiredFieldError:
        return None


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    """First non-null value among camelCase keys or their snake_case spelling."""
    for key in keys:
        for candidate in (key, to_snake(key)):
            if candidate in raw and raw[candidate] is not None:
                return raw[candidate]
    return None


def _require_mapping(raw: Any, message: str = MSG_INPUT_REQUIRED) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping) or not raw:
        raise MissingRequiredFieldError(message)
    return raw


def _require_positive(raw: Mapping[str, Any], message: str, *keys: str) -> float:
    val = _pick(raw, *keys)
    num = _to_num_optional(val)
    if num is None or num <= 0:
        raise MissingRequiredFieldError(message, field=keys[0])
    return num


def _require_non_negative(raw: Mapping[str, Any], message: str, *keys: str, required: bool = False) -> float:
    val = _pick(raw, *keys)
    if val is None and not required:
        return 0.0
    num = _to_num_optional(val)
    if num is None or num < 0:
        raise MissingRequiredFieldError(message, field=keys[0])
    return num


def _require_positive_int(raw: Mapping[str, Any], message: str, *keys: str) -> int:
    num = _to_num_optional(_pick(raw, *keys))
    if num is None or num <= 0 or not float(num).is_integer():
        raise MissingRequiredFieldError(message, field=keys[0])
    return int(num)


def _build(model_cls: Type[R], raw: Mapping[str, Any]) -> R:
    """Validate into a typed record; pydantic errors become InvalidRangeError."""
    try:
        return model_cls.model_validate(dict(raw))
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidRangeError(f"Valeur invalide pour {loc}: {first.get('msg')}", field=loc) from e


# -----------------------------
# Napkin
# -----------------------------

def prepare_napkin_flip(raw: Any) -> NapkinFlipInput:
    raw = _require_mapping(raw)
    final_price = _require_positive(
        raw, "Le prix final (valeur de revente) doit être un nombre positif", "finalPrice"
    )
    initial_price = _require_positive(
        raw, "Le prix initial (prix d'achat) doit être un nombre positif", "initialPrice"
    )
    renovation = _require_non_negative(raw, MSG_RENOVATION, "renovationCost", required=True)
    if initial_price >= final_price:
        raise InvalidRangeError(
            "Le prix initial doit être inférieur au prix final", field="initialPrice"
        )
    return NapkinFlipInput(final_price=final_price, initial_price=initial_price, renovation_cost=renovation)


def prepare_napkin_flip_offer(raw: Any) -> NapkinFlipOfferInput:
    raw = _require_mapping(raw)
    final_price = _require_positive(
        raw, "Le prix final (valeur de revente) doit être un nombre positif", "finalPrice"
    )
    renovation = _require_non_negative(raw, MSG_RENOVATION, "renovationCost")
    target = _to_num_optional(_pick(raw, "targetProfit"))
    if target is not None and target < 0:
        raise InvalidRangeError("Le profit cible doit être positif ou zéro", field="targetProfit")
    return NapkinFlipOfferInput(final_price=final_price, renovation_cost=renovation, target_profit=target)


def prepare_napkin_multi(raw: Any) -> NapkinMultiInput:
    raw = _require_mapping(raw)
    price = _require_positive(raw, MSG_PURCHASE_PRICE, "purchasePrice")
    units = _require_positive_int(raw, MSG_UNITS, "units", "unitCount")
    gross = _require_positive(raw, MSG_GROSS_REVENUE, "grossRevenue")
    return NapkinMultiInput(purchase_price=price, units=units, gross_revenue=gross)


def prepare_napkin_multi_offer(raw: Any) -> NapkinMultiOfferInput:
    raw = _require_mapping(raw)
    units = _require_positive_int(raw, MSG_UNITS, "units", "unitCount")
    gross = _require_positive(raw, MSG_GROSS_REVENUE, "grossRevenue")
    target = _to_num_optional(_pick(raw, "targetCashflowPerUnit"))
    if target is not None and target < 0:
        raise InvalidRangeError(
            "Le cashflow cible par porte doit être positif ou zéro", field="targetCashflowPerUnit"
        )
    return NapkinMultiOfferInput(units=units, gross_revenue=gross, target_cashflow_per_unit=target)


# -----------------------------
# FLIP detailed
# -----------------------------

def prepare_flip_deal(raw: Any) -> FlipDeal:
    raw = _require_mapping(raw)
    price = _to_num_optional(_pick(raw, "purchasePrice"))
    sale = _to_num_optional(_pick(raw, *SALE_PRICE_KEYS))
    if not price or not sale or price <= 0 or sale <= 0:
        raise MissingRequiredFieldError(
            "Le prix d'achat et le prix de vente sont requis", field="purchasePrice"
        )
    _require_non_negative(raw, MSG_RENOVATION, "renovationCost")
    months = _to_num_optional(_pick(raw, "holdingPeriodMonths", "holdingPeriod"))
    if months is not None and months <= 0:
        raise InvalidRangeError(
            "La période de détention doit être supérieure à 0 mois", field="holdingPeriodMonths"
        )
    return _build(FlipDeal, raw)


# -----------------------------
# MULTI detailed
# -----------------------------

def _financing_total(deal: MultiDeal) -> float:
    total = deal.financing.conventional_mortgage.amount or 0.0
    return total + sum(cf.amount for cf in deal.financing.creative_financing)


def prepare_multi_deal(raw: Any) -> MultiDeal:
    raw = _require_mapping(raw)
    prop = _pick(raw, "property")
    if not isinstance(prop, Mapping):
        raise MissingRequiredFieldError("Les informations sur la propriété sont requises", field="property")
    revenues = _pick(raw, "revenues")
    if not isinstance(revenues, Mapping):
        raise MissingRequiredFieldError("Les détails des revenus sont requis", field="revenues")
    financing = _pick(raw, "financing")
    if not isinstance(financing, Mapping):
        raise MissingRequiredFieldError("Les détails du financement sont requis", field="financing")

    _require_positive(prop, MSG_PURCHASE_PRICE, "purchasePrice")
    unit_count = _require_positive_int(prop, MSG_UNITS, "unitCount")

    units = _pick(revenues, "units")
    if not isinstance(units, list) or not units:
        raise MissingRequiredFieldError("Au moins une unité (logement) doit être spécifiée", field="revenues.units")
    if len(units) != unit_count:
        raise InvalidRangeError(
            f"Le nombre d'unités dans les détails des revenus ({len(units)}) ne correspond pas "
            f"au nombre d'unités de la propriété ({unit_count})",
            field="revenues.units",
        )
    for rate_key in ("vacancyRate", "badDebtRate"):
        rate_val = _to_num_optional(_pick(revenues, rate_key))
        if rate_val is not None and not 0 <= rate_val <= 100:
            raise InvalidRangeError(f"Le taux {rate_key} doit être entre 0 et 100", field=f"revenues.{rate_key}")

    if _pick(financing, "downPaymentPercentage") is None:
        raise MissingRequiredFieldError(
            "Le pourcentage de mise de fonds est requis", field="financing.downPaymentPercentage"
        )

    deal = _build(MultiDeal, raw)

    for i, cf in enumerate(deal.financing.creative_financing, start=1):
        if cf.amount < 0:
            raise InvalidRangeError(
                f"Le montant du financement créatif {i} doit être positif ou zéro", field="financing.creativeFinancing"
            )
        if not cf.interest_only and not cf.payment_amount and not (cf.amortization_years or cf.term_years):
            raise InvalidRangeError(
                f"Le financement créatif {i} doit avoir une durée d'amortissement supérieure à 0",
                field="financing.creativeFinancing",
            )

    dp = deal.financing.down_payment_percentage
    if dp <= 0 or dp >= 1:
        raise InvalidRangeError(
            "Le pourcentage de mise de fonds doit être entre 0 et 1",
            field="financing.downPaymentPercentage",
        )
    if deal.financing.conventional_mortgage.amount is not None:
        total = _financing_total(deal)
        expected = deal.property.purchase_price * (1 - dp)
        if abs(total - expected) > 1:
            raise InvalidRangeError(
                f"Le montant total du financement ({total:.2f}) ne correspond pas "
                f"au montant attendu ({expected:.2f})",
                field="financing",
            )
    return deal


def prepare_multi_basics(raw: Any) -> dict[str, Any]:
    """Basic MULTI figures (price, doors, rent per door) as plain numbers."""
    raw = _require_mapping(raw)
    price = _require_positive(raw, MSG_PURCHASE_PRICE, "purchasePrice")
    unit_count = _require_positive_int(raw, MSG_UNITS, "unitCount", "units")
    rent = _require_non_negative(
        raw, "Le loyer par unité doit être un nombre positif ou zéro", "rentalIncomePerUnit", required=True
    )
    extra = _require_non_negative(
        raw, "Les revenus additionnels doivent être un nombre positif ou zéro", "additionalIncome"
    )
    dp = _to_num_optional(_pick(raw, "downPaymentPercentage"))
    if dp is None:
        dp = 0.2
    elif dp > 1:
        dp = dp / 100.0
    if not 0 < dp < 1:
        raise InvalidRangeError(
            "Le pourcentage de mise de fonds doit être entre 0 et 1", field="downPaymentPercentage"
        )
    return {
        "address": _pick(raw, "address"),
        "purchase_price": price,
        "unit_count": unit_count,
        "rental_income_per_unit": rent,
        "additional_income": extra,
        "down_payment_percentage": dp,
    }


def prepare_basic_multi(raw: Any) -> BasicMultiDeal:
    raw = _require_mapping(raw)
    price = _to_num_optional(_pick(raw, "purchasePrice"))
    gross = _to_num_optional(_pick(raw, "grossAnnualRent", "grossRevenue"))
    units = _to_num_optional(_pick(raw, "units", "unitCount"))
    if not price or not gross or not units or price <= 0 or gross <= 0 or units <= 0:
        raise MissingRequiredFieldError(
            "Le prix d'achat, les revenus annuels et le nombre d'unités sont requis",
            field="purchasePrice",
        )
    _require_positive_int(raw, MSG_UNITS, "units", "unitCount")
    return _build(BasicMultiDeal, raw)


# -----------------------------
# Comparison
# -----------------------------

def is_flip_scenario(raw: Mapping[str, Any]) -> bool:
    return any(k in raw for k in SALE_PRICE_KEYS)


def prepare_quick_flip(raw: Mapping[str, Any]) -> QuickFlipScenario:
    _require_positive(raw, MSG_PURCHASE_PRICE, "purchasePrice")
    _require_positive(raw, "Le prix de vente doit être un nombre positif", *SALE_PRICE_KEYS)
    _require_non_negative(raw, MSG_RENOVATION, "renovationCost")
    months = _to_num_optional(_pick(raw, "monthsHeld", "holdingPeriod"))
    if months is not None and months <= 0:
        raise InvalidRangeError("La durée de détention doit être supérieure à 0 mois", field="monthsHeld")
    return _build(QuickFlipScenario, raw)


def prepare_quick_multi(raw: Mapping[str, Any]) -> QuickMultiScenario:
    _require_positive(raw, MSG_PURCHASE_PRICE, "purchasePrice")
    _require_non_negative(raw, MSG_GROSS_REVENUE, "grossAnnualRent", "grossRevenue", required=True)
    if _pick(raw, "units", "unitCount") is not None:
        _require_positive_int(raw, MSG_UNITS, "units", "unitCount")
    scenario = _build(QuickMultiScenario, raw)
    ratio_ = scenario.down_payment_ratio
    if ratio_ is not None and not 0 < ratio_ <= 1:
        raise InvalidRangeError(
            "Le ratio de mise de fonds doit être entre 0 et 1", field="downPaymentRatio"
        )
    return scenario


def prepare_comparison_options(raw: Any) -> ComparisonOptions:
    if raw is None:
        return ComparisonOptions()
    if not isinstance(raw, Mapping):
        raise InvalidRangeError("Les options de comparaison doivent être un objet", field="options")
    return _build(ComparisonOptions, raw)


# -----------------------------
# Liquidity
# -----------------------------

def prepare_liquidity(raw: Any) -> LiquidityInputs:
    raw = _require_mapping(raw)
    _require_positive(raw, MSG_PURCHASE_PRICE, "purchasePrice")
    _require_non_negative(raw, MSG_GROSS_REVENUE, "grossRevenue", required=True)
    _require_non_negative(raw, "Le taux d'intérêt doit être positif ou zéro", "interestRate", required=True)
    years = _to_num_optional(_pick(raw, "amortizationYears"))
    if years is not None and years <= 0:
        raise InvalidRangeError("La période d'amortissement doit être supérieure à 0", field="amortizationYears")
    inputs = _build(LiquidityInputs, raw)
    if inputs.down_payment_percentage is not None and not 0 <= inputs.down_payment_percentage < 1:
        raise InvalidRangeError(
            "Le pourcentage de mise de fonds doit être entre 0 et 1", field="downPaymentPercentage"
        )
    if inputs.down_payment is not None and inputs.down_payment < 0:
        raise InvalidRangeError("La mise de fonds doit être positive ou zéro", field="downPayment")
    return inputs


def prepare_max_price_query(raw: Any) -> MaxPriceQuery:
    raw = _require_mapping(raw)
    _require_positive_int(raw, MSG_UNITS, "units", "unitCount")
    _require_non_negative(raw, MSG_GROSS_REVENUE, "grossAnnualRent", "grossRevenue", required=True)
    _require_non_negative(raw, MSG_RENOVATION, "renovationCost")
    query = _build(MaxPriceQuery, raw)
    if query.down_payment_ratio is not None and not 0 <= query.down_payment_ratio < 1:
        raise InvalidRangeError(
            "Le ratio de mise de fonds doit être entre 0 et 1", field="downPaymentRatio"
        )
    return query


# -----------------------------
# Portfolio growth
# -----------------------------

def prepare_acquisition_strategy(raw: Any) -> AcquisitionStrategyInput:
    raw = _require_mapping(raw, "Les paramètres sont requis")
    _require_positive_int(raw, "Le nombre d'années doit être un entier positif", "numberOfYears")
    _require_positive(raw, "Le revenu mensuel cible doit être un nombre positif", "targetMonthlyIncome")
    properties = _pick(raw, "properties")
    if not isinstance(properties, list) or not properties:
        raise MissingRequiredFieldError("Au moins une propriété doit être spécifiée", field="properties")

    for i, prop in enumerate(properties, start=1):
        if not isinstance(prop, Mapping):
            raise MissingRequiredFieldError(f"La propriété {i} est invalide", field="properties")
        _require_positive(prop, f"La propriété {i} doit avoir un prix d'achat positif", "purchasePrice")
        _require_positive_int(prop, f"La propriété {i} doit avoir un nombre d'unités entier positif", "unitCount")
        _require_non_negative(
            prop, f"La propriété {i} doit avoir un cashflow par porte positif ou zéro", "cashflowPerDoor", required=True
        )
        dp = _to_num_optional(_pick(prop, "downPaymentPercentage"))
        if dp is None or dp <= 0 or dp > 1:
            raise InvalidRangeError(
                f"La propriété {i} doit avoir un pourcentage de mise de fonds entre 0 et 1",
                field="downPaymentPercentage",
            )
        _require_non_negative(
            prop, f"La propriété {i} doit avoir un taux d'appréciation positif ou zéro", "appreciationRate", required=True
        )
    return _build(AcquisitionStrategyInput, raw)


def prepare_required_units(raw: Any) -> tuple[float, float]:
    raw = _require_mapping(raw, "Les paramètres sont requis")
    target = _require_positive(raw, "Le revenu mensuel cible doit être un nombre positif", "targetMonthlyIncome")
    per_door = _require_positive(raw, "Le cashflow par porte doit être un nombre positif", "cashflowPerDoor")
    return target, per_door


def prepare_acquisition_model(raw: Any) -> AcquisitionModelParams:
    raw = _require_mapping(raw, "Les paramètres sont requis")
    _require_positive(raw, "Le revenu mensuel cible doit être un nombre positif", "targetMonthlyIncome")
    _require_positive(raw, "Le cashflow par porte doit être un nombre positif", "cashflowPerDoor")
    if _pick(raw, "initialPurchasePrice") is None and _pick(raw, "pricePerUnit") is None:
        raise MissingRequiredFieldError(
            "Vous devez spécifier soit le prix d'achat initial, soit le prix par unité",
            field="initialPurchasePrice",
        )
    params = _build(AcquisitionModelParams, raw)
    if params.number_of_years <= 0 or params.initial_unit_count <= 0 or params.unit_count_increment < 0:
        raise InvalidRangeError(
            "Le nombre d'années et le nombre d'unités initial doivent être positifs", field="numberOfYears"
        )
    return params


def prepare_transfer_tax(raw: Any) -> dict[str, Any]:
    raw = _require_mapping(raw)
    value = _to_num_optional(_pick(raw, "propertyValue", "purchasePrice"))
    if value is None or value <= 0:
        raise InvalidRangeError("La valeur de la propriété doit être supérieure à 0", field="propertyValue")
    return {
        "property_value": value,
        "municipality": str(_pick(raw, "municipality") or ""),
        "first_time_buyer": bool(_pick(raw, "isFirstTimeHomeBuyer")),
        "first_home_in_quebec": bool(_pick(raw, "isFirstHomeInQuebec")),
        "custom_rate_percentage": _to_num_optional(_pick(raw, "customRatePercentage")),
    }
