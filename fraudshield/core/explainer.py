from typing import List, Sequence

from fraudshield.core.red_flag_extractor import ExtractedMetadata, RedFlag
from fraudshield.core.risk_scorer import ClassifierLabel

NO_INDICATORS_MESSAGE = "✅ No significant fraud indicators detected in the content."

SEVERITY_SECTIONS = (
    ('high', "🚨 HIGH RISK INDICATORS:"),
    ('medium', "⚠️ MEDIUM RISK INDICATORS:"),
    ('low', "⚡ LOW RISK INDICATORS:"),
)

BAND_DIRECTIVES = {
    'HIGH': "🛑 RECOMMENDATION: High probability of fraudulent content. "
            "Avoid engagement and report if necessary.",
    'MEDIUM': "⚠️ RECOMMENDATION: Exercise caution. Verify credentials and "
              "seek professional advice before proceeding.",
    'LOW': "✅ RECOMMENDATION: Low risk detected, but always verify "
           "investment opportunities independently.",
}

BAND_RECOMMENDATIONS = {
    'HIGH': (
        "🚨 Do not invest or share personal information",
        "📞 Report to cybercrime authorities if contacted",
        "🔒 Block the sender/source immediately",
    ),
    'MEDIUM': (
        "🔍 Verify advisor credentials with SEBI",
        "💼 Consult with registered financial advisors",
        "📋 Request proper documentation and disclosures",
    ),
    'LOW': (
        "✅ Still verify credentials independently",
        "📄 Ensure proper documentation",
        "💡 Consider diversified investment approach",
    ),
}

# Appended in this order when the flag code is present
FLAG_RECOMMENDATIONS = (
    ('GUARANTEED_RETURNS', "⚠️ No legitimate investment guarantees returns"),
    ('UNOFFICIAL_CHANNELS', "📱 Avoid investment advice from social media groups"),
    ('ADVANCE_PAYMENT', "💳 Never pay upfront fees for investment opportunities"),
    ('PRE_IPO_SCAM', "📈 IPO shares are allotted only through your broker or bank (ASBA)"),
    ('CLONE_APP_WARNING', "📲 Install trading apps only from your registered broker's official links"),
    ('FAKE_CREDENTIALS', "🆔 Check the claimed registration number on the SEBI intermediary register"),
)

EMAIL_RECOMMENDATION = "📧 Verify email domains and sender authenticity"


class ExplanationGenerator:
    """Narrative and action list built from the same signals as the score."""

    def explain(self, flags: Sequence[RedFlag], score: int, band: str,
                labels: Sequence[ClassifierLabel] = ()) -> str:
        explanation = f"Risk Assessment: {band} (Score: {score}/100)\n\n"

        if not flags:
            return explanation + NO_INDICATORS_MESSAGE

        for severity, heading in SEVERITY_SECTIONS:
            section = [f for f in flags if f.severity == severity]
            if not section:
                continue
            explanation += heading + "\n"
            for flag in section:
                evidence = '", "'.join(flag.evidence)
                explanation += f"• {flag.label.upper()}: Found \"{evidence}\" (Weight: {flag.weight})\n"
            explanation += "\n"

        if labels:
            explanation += "🤖 AI ANALYSIS:\n"
            for label in labels:
                explanation += f"• {label.category}: {label.explanation} (Confidence: {label.confidence}%)\n"
            explanation += "\n"

        explanation += BAND_DIRECTIVES.get(band, BAND_DIRECTIVES['LOW'])
        return explanation

    def recommend(self, flags: Sequence[RedFlag], band: str,
                  metadata: ExtractedMetadata) -> List[str]:
        recommendations = list(BAND_RECOMMENDATIONS.get(band, BAND_RECOMMENDATIONS['LOW']))

        codes = {flag.code for flag in flags}
        for code, advice in FLAG_RECOMMENDATIONS:
            if code in codes:
                recommendations.append(advice)

        if metadata is not None and metadata.emails:
            recommendations.append(EMAIL_RECOMMENDATION)

        return recommendations
