#!/usr/bin/env python3
"""
Train FraudShield ML Model
TF-IDF + RandomForest investment-fraud classifier (CLASSIFIER_PROVIDER=model)
"""

import argparse
from fraudshield.config import settings
from fraudshield.core.ml_classifier import TrainedFraudClassifier

def load_sample_dataset():
    """Load sample investment-promotion dataset for training"""

    # Sample legitimate messages
    legitimate_texts = [
        "Mutual fund investments are subject to market risks, read all scheme related documents carefully",
        "Your SIP of Rs 5000 in the flexi cap fund has been processed successfully",
        "Quarterly portfolio statement is now available in your registered broker account",
        "Reminder: update your KYC details with your depository participant before the due date",
        "Our research note on the banking sector is available for registered clients",
        "Apply for the IPO through ASBA using your bank's net banking facility",
        "Past performance is not indicative of future returns, consult your advisor",
        "The fund house has declared a dividend for unit holders of the equity savings scheme",
        "Please read the risk disclosure document before trading in derivatives",
        "Your annual financial planning review meeting is scheduled for next Monday"
    ]

    # Sample fraudulent messages
    fraud_texts = [
        "Guaranteed 200% returns in 30 days! Join our WhatsApp group now",
        "Pre-IPO shares with firm allotment, pay registration fee via UPI today",
        "Double your money in one week, limited time offer, act now",
        "Insider information: this stock will hit target price tomorrow, coordinate buying",
        "Send token amount to our paytm number to unlock your trading account",
        "SEBI registered expert gives secret tip, assured returns with no risk",
        "Download our trading app clone for copy trading and fixed profit daily",
        "Join Telegram channel for pump and dump calls, book profit before exit",
        "Offshore tax free scheme, no SEBI rules, pay in bitcoin only",
        "Only today: triple your money with our government scheme, hurry up"
    ]

    # Combine and create labels
    texts = legitimate_texts + fraud_texts
    labels = [0] * len(legitimate_texts) + [1] * len(fraud_texts)

    return texts, labels

def main():
    parser = argparse.ArgumentParser(description='Train FraudShield ML Model')
    parser.add_argument('--model-path', default=settings.CLASSIFIER_MODEL_PATH,
                        help='Where to save the RandomForest model')
    parser.add_argument('--vectorizer-path', default=settings.CLASSIFIER_VECTORIZER_PATH,
                        help='Where to save the TF-IDF vectorizer')

    args = parser.parse_args()

    print("=" * 60)
    print("FraudShield Model Training")
    print("=" * 60)

    # Load dataset
    print("\n📚 Loading training dataset...")
    texts, labels = load_sample_dataset()
    print(f"  ✓ Loaded {len(texts)} texts ({sum(labels)} fraud, {len(labels) - sum(labels)} legitimate)")

    print("\n🌲 Training Traditional ML Model...")
    classifier = TrainedFraudClassifier(args.model_path, args.vectorizer_path)
    classifier.train(texts, labels)

    print("\n" + "=" * 60)
    print("✓ Training Complete!")
    print("=" * 60)
    print(f"\nModel saved to {args.model_path}")
    print("Set CLASSIFIER_PROVIDER=model and run: python -m fraudshield.main")

if __name__ == "__main__":
    main()
