# medvault_pkg/assistant/responses.py
"""
Scripted health assistant. Rules are checked in order; the first rule with a
keyword contained in the lowercased message wins.
"""

GREETING = "Hello! I'm your Virtual Health Assistant. How can I help you today?"

DISCLAIMER = (
    "\n\nDisclaimer: This information is for educational purposes only and not a substitute for "
    "professional medical advice. Always consult with your healthcare provider before taking any "
    "medication or making health decisions."
)

MEDICATION_RULES = [
    (('pain', 'headache', 'ache'),
     "For mild to moderate pain or headaches, over-the-counter options like acetaminophen (Tylenol) or "
     "ibuprofen (Advil, Motrin) may help. Ibuprofen also reduces inflammation. For persistent or severe "
     "pain, please consult your doctor."),
    (('cold', 'flu', 'cough'),
     "For cold and flu symptoms, rest and hydration are important. Over-the-counter options include "
     "acetaminophen or ibuprofen for fever and pain, decongestants for nasal congestion, and cough "
     "suppressants for cough. Combination cold medicines address multiple symptoms. Always read labels "
     "carefully and avoid duplicating active ingredients."),
    (('allergy', 'allergies', 'antihistamine'),
     "For allergies, non-drowsy antihistamines like loratadine (Claritin), cetirizine (Zyrtec), or "
     "fexofenadine (Allegra) may help. Nasal steroid sprays like fluticasone (Flonase) can reduce nasal "
     "inflammation. For severe allergies, please consult your doctor."),
    (('sleep', 'insomnia'),
     "For occasional sleep difficulties, good sleep hygiene practices are recommended first. If needed, "
     "over-the-counter options include melatonin, diphenhydramine (Benadryl), or doxylamine (Unisom). For "
     "persistent insomnia, please consult your doctor as prescription medications may be more appropriate."),
    (('stomach', 'indigestion', 'heartburn'),
     "For indigestion or heartburn, antacids like Tums or Rolaids provide quick, short-term relief. H2 "
     "blockers like famotidine (Pepcid) or proton pump inhibitors like omeprazole (Prilosec) offer "
     "longer-lasting relief for frequent symptoms. For persistent digestive issues, please consult your doctor."),
]

MEDICATION_GENERAL = (
    "Your medications can be viewed and managed in the Medications section. You can add new medications, "
    "view dosage information, and set reminders. If you're looking for medication suggestions for a specific "
    "condition, please provide more details about your symptoms. Remember that any suggestions should be "
    "discussed with your healthcare provider."
)

# (keywords, reply, append disclaimer)
TOPIC_RULES = [
    (('health advice', 'healthy', 'wellness', 'lifestyle'),
     "Here are some general health recommendations:\n\n"
     "1. Stay physically active with at least 150 minutes of moderate exercise weekly\n"
     "2. Maintain a balanced diet rich in fruits, vegetables, whole grains, and lean proteins\n"
     "3. Stay hydrated by drinking plenty of water\n"
     "4. Get 7-9 hours of quality sleep each night\n"
     "5. Manage stress through mindfulness, meditation, or other relaxation techniques\n"
     "6. Avoid smoking and limit alcohol consumption\n"
     "7. Keep up with preventive care and regular check-ups\n\n"
     "Would you like more specific advice on any of these areas?", True),
    (('diet', 'nutrition', 'food', 'eat'),
     "A balanced diet is crucial for good health. Consider these nutrition guidelines:\n\n"
     "1. Eat a variety of fruits and vegetables daily (aim for 5+ servings)\n"
     "2. Choose whole grains over refined grains\n"
     "3. Include lean proteins like fish, poultry, beans, and nuts\n"
     "4. Limit saturated fats, trans fats, sodium, and added sugars\n"
     "5. Stay hydrated with water as your primary beverage\n"
     "6. Practice portion control\n\n"
     "For personalized nutrition advice, consider consulting with a registered dietitian.", True),
    (('exercise', 'workout', 'fitness'),
     "Regular physical activity is essential for health. Consider these exercise guidelines:\n\n"
     "1. Aim for at least 150 minutes of moderate aerobic activity or 75 minutes of vigorous activity weekly\n"
     "2. Include muscle-strengthening activities at least twice a week\n"
     "3. Start slowly and gradually increase intensity if you're new to exercise\n"
     "4. Choose activities you enjoy to help maintain consistency\n"
     "5. Incorporate flexibility and balance exercises, especially as you age\n\n"
     "Before starting a new exercise program, especially if you have existing health conditions, "
     "consult with your healthcare provider.", True),
    (('mental health', 'stress', 'anxiety', 'depression'),
     "Mental health is as important as physical health. Here are some strategies that may help:\n\n"
     "1. Practice stress management techniques like deep breathing, meditation, or yoga\n"
     "2. Maintain social connections and seek support when needed\n"
     "3. Get regular physical activity, which can improve mood\n"
     "4. Ensure adequate sleep\n"
     "5. Consider mindfulness practices or cognitive behavioral techniques\n"
     "6. Limit alcohol and avoid recreational drugs\n\n"
     "If you're experiencing persistent mental health concerns, please reach out to a healthcare provider "
     "or mental health professional. Many effective treatments are available.", True),
    (('report', 'test', 'result'),
     "Your medical reports are available in the Reports section. You can view, download, and upload new "
     "reports there. Would you like to know how to upload a new report?", False),
    (('help', 'guide', 'how to'),
     "I can help you navigate the patient portal. You can ask me about appointments, medications, reports, "
     "health metrics, or any other feature. I can also provide general health information and medication "
     "suggestions, though these should always be discussed with your healthcare provider. What would you "
     "like to learn more about?", False),
]

APPOINTMENT_REPLY = (
    "You can schedule an appointment by going to the Appointments section in the navigation menu. "
    "Click on 'Add New Appointment' and fill in the required details. Would you like me to guide you there?"
)

FALLBACK_REPLY = (
    "I'm here to help with your healthcare needs. You can ask me about scheduling appointments, managing "
    "medications, viewing reports, tracking health metrics, or navigating the portal. I can also provide "
    "general health information and medication suggestions, though these should always be verified with "
    "your healthcare provider. How can I assist you today?"
)


def _mentions(text, keywords):
    return any(keyword in text for keyword in keywords)


def get_response(message):
    text = (message or '').lower()

    if _mentions(text, ('appointment', 'schedule', 'book')):
        return APPOINTMENT_REPLY

    if _mentions(text, ('medication', 'medicine', 'prescription')):
        for keywords, reply in MEDICATION_RULES:
            if _mentions(text, keywords):
                return reply + DISCLAIMER
        return MEDICATION_GENERAL + DISCLAIMER

    for keywords, reply, with_disclaimer in TOPIC_RULES:
        if _mentions(text, keywords):
            return reply + DISCLAIMER if with_disclaimer else reply

    return FALLBACK_REPLY
