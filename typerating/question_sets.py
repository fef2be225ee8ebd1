"""
Bundled question sets: the offline tier behind the remote question bank.

Records are kept in the camelCase export shape and go through the same
normalizer as remote rows.
"""
from typing import Dict, List

BUNDLED_SOURCE = "bundled"
MINIMAL_SOURCE = "minimal"


def _record(qid, question, options, correct, explanation, aircraft, category, difficulty, reference=None, regulation=None, source=BUNDLED_SOURCE) -> Dict:
    return {
        "_id": qid,
        "question": question,
        "options": list(options),
        "correctAnswer": correct,
        "explanation": explanation,
        "aircraftType": aircraft,
        "category": category,
        "difficulty": difficulty,
        "isActive": True,
        "reference": reference,
        "regulationCode": regulation,
        "source": source,
    }


A320_QUESTIONS = (
    _record(
        "a320-elec-001",
        "What is the normal AC power source priority sequence in the A320?",
        ("Engine generators, external power, APU generator",
         "External power, APU generator, engine generators",
         "APU generator, engine generators, external power",
         "Engine generators, APU generator, external power"),
        1,
        "External power has priority over the APU generator and engine generators when it is connected and selected ON; "
        "engine generators otherwise have priority over the APU generator.",
        "A320_FAMILY", "Electrical", "intermediate", "A320 FCOM DSC-24-10",
    ),
    _record(
        "a320-elec-002",
        "During an ELEC IDG 1 FAULT, what action does the QRH require for the affected IDG?",
        ("Set the GEN 1 pushbutton OFF only",
         "Disconnect the IDG with the IDG 1 pushbutton",
         "Start the APU and continue without further action",
         "Deploy the RAT manually"),
        1,
        "The IDG is disconnected to prevent damage; the disconnection is irreversible in flight and the APU generator can "
        "replace the lost source.",
        "A320_FAMILY", "Sistema Eléctrico", "advanced", "A320 QRH ELEC IDG FAULT", "EASA CS-25.1351",
    ),
    _record(
        "a320-elec-003",
        "Which source powers the AC ESS bus in the emergency electrical configuration?",
        ("The static inverter only", "The RAT-driven emergency generator", "The APU generator", "Battery 2 directly"),
        1,
        "In the emergency electrical configuration the RAT drives the emergency generator, which supplies the AC ESS bus; "
        "the static inverter is used when the emergency generator is not available.",
        "A320_FAMILY", "Electrical", "advanced", "A320 FCOM DSC-24-20",
    ),
    _record(
        "a320-hyd-001",
        "How many independent hydraulic systems does the A320 have?",
        ("Two systems (Green and Blue)", "Three systems (Green, Blue and Yellow)",
         "One system with an electric backup", "Four systems for redundancy"),
        1,
        "The A320 has three independent hydraulic systems: Green (engine 1 pump), Blue (electric pump with RAT backup) "
        "and Yellow (engine 2 pump with electric and hand pump backup).",
        "A320_FAMILY", "Hydraulics", "basic", "A320 FCOM DSC-29-10",
    ),
    _record(
        "a320-hyd-002",
        "What is the function of the Power Transfer Unit (PTU)?",
        ("Transfers fluid between the Green and Yellow reservoirs",
         "Transfers hydraulic power between the Green and Yellow systems without fluid exchange",
         "Pressurizes the Blue system on ground",
         "Supplies the brakes accumulator in flight"),
        1,
        "The PTU is a bidirectional unit that transfers hydraulic power between Green and Yellow when the pressure "
        "difference exceeds 500 PSI; no fluid passes between the systems.",
        "A320_FAMILY", "Sistema Hidráulico", "intermediate", "A320 FCOM DSC-29-20",
    ),
    _record(
        "a320-fctl-001",
        "What type of flight control system does the A320 use?",
        ("Conventional cable and pulley system", "Fly-by-wire system",
         "Hydro-mechanical system without computers", "Electro-mechanical system with cable backup only"),
        1,
        "Pilot inputs are transmitted electronically to the flight control computers (ELAC, SEC, FAC), which command the "
        "hydraulic actuators of the control surfaces.",
        "A320_FAMILY", "Flight Controls", "basic", "A320 FCOM DSC-27-10",
    ),
    _record(
        "a320-fctl-002",
        "In Normal Law, which protection prevents the aircraft from exceeding the maximum angle of attack?",
        ("Load factor protection", "High angle of attack protection", "Pitch attitude protection", "Bank angle protection"),
        1,
        "High angle of attack protection limits the angle of attack to alpha max regardless of sidestick input, and "
        "alpha floor can command TOGA thrust.",
        "A320_FAMILY", "Flight Protection", "advanced", "A320 FCOM DSC-27-20",
    ),
    _record(
        "a320-fuel-001",
        "Where is fuel used first in the A320 during normal operations?",
        ("Wing tanks inner cells", "Center tank", "Wing tanks outer cells", "Trim tank"),
        1,
        "Center tank fuel is used first through the center tank pumps, then the inner cells of the wing tanks; outer "
        "cell fuel transfers to the inner cells when these reach a low level.",
        "A320_FAMILY", "Fuel", "intermediate", "A320 FCOM DSC-28-10",
    ),
    _record(
        "a320-apu-001",
        "Up to what altitude can the A320 APU generator supply electrical power?",
        ("15 000 ft", "25 000 ft", "39 000 ft (maximum operating altitude)", "The APU cannot be used in flight"),
        2,
        "The APU generator can supply the whole electrical network up to the maximum operating altitude; bleed air "
        "supply is limited to a lower altitude.",
        "A320_FAMILY", "APU", "intermediate", "A320 FCOM DSC-49-10",
    ),
    _record(
        "a320-press-001",
        "How many cabin pressure controllers does the A320 have?",
        ("One, with a manual backup", "Two, used alternately", "Three, one per pack and one spare", "Two, operating simultaneously"),
        1,
        "Two identical controllers are installed; only one is active at a time and the system automatically alternates "
        "after each landing or on failure.",
        "A320_FAMILY", "Pressurization", "intermediate", "A320 FCOM DSC-21-30",
    ),
    _record(
        "a320-lgr-001",
        "Which hydraulic system normally supplies the A320 landing gear?",
        ("Blue", "Yellow", "Green", "Green and Yellow together"),
        2,
        "The Green hydraulic system supplies landing gear extension and retraction; gravity extension is available as a "
        "backup with the hand crank.",
        "A320_FAMILY", "Landing Gear", "basic", "A320 FCOM DSC-32-10",
    ),
    _record(
        "a320-afs-001",
        "What happens when the autothrust is active and the thrust levers are moved above the CL detent in flight?",
        ("Autothrust remains active and limits thrust to CLB",
         "Autothrust becomes armed and thrust is controlled manually by lever position",
         "Autothrust disconnects permanently",
         "TOGA lock is activated"),
        1,
        "Setting the thrust levers beyond the CL detent (outside the active range) leaves autothrust armed; thrust then "
        "corresponds to lever position.",
        "A320_FAMILY", "Autoflight", "advanced", "A320 FCOM DSC-22-30",
    ),
)

B737_QUESTIONS = (
    _record(
        "b737-eng-001",
        "What is the maximum EGT for engine start on the CFM56-7B?",
        ("725°C", "750°C", "950°C", "1000°C"),
        0,
        "The CFM56-7B starting EGT limit is 725°C; exceeding it requires the start to be aborted.",
        "B737_FAMILY", "Engines", "intermediate", "B737 FCOM Limitations - Engines",
    ),
    _record(
        "b737-eng-002",
        "How many igniters are installed on each CFM56-7B engine?",
        ("One", "Two", "Three", "Four"),
        1,
        "Each engine has two igniters (left and right); the IGN selector chooses which is used for ground starts.",
        "B737_FAMILY", "Engines", "basic", "B737 FCOM 7.20",
    ),
    _record(
        "b737-ac-001",
        "How many air conditioning packs does the Boeing 737NG have?",
        ("One", "Two", "Three", "Four"),
        1,
        "The 737NG has two packs; one pack can maintain pressurization and temperature at all altitudes with reduced "
        "comfort.",
        "B737_FAMILY", "Air Systems", "basic", "B737 FCOM 2.20",
    ),
    _record(
        "b737-ac-002",
        "What is the maximum cabin differential pressure on the 737NG?",
        ("7.8 psi", "8.35 psi", "9.1 psi", "9.8 psi"),
        2,
        "The maximum differential pressure (relief valves) is 9.1 psi on the 737NG.",
        "B737_FAMILY", "Air Systems", "advanced", "B737 FCOM Limitations - Air Systems",
    ),
    _record(
        "b737-hyd-001",
        "Which hydraulic systems are installed on the Boeing 737NG?",
        ("A, B and Standby", "Green, Blue and Yellow", "Left, Right and Center", "System 1, System 2 and Standby"),
        0,
        "The 737NG has hydraulic systems A and B plus a standby system that backs up rudder, leading edge devices and "
        "thrust reversers.",
        "B737_FAMILY", "Hydraulics", "basic", "B737 FCOM 13.20",
    ),
    _record(
        "b737-elec-001",
        "What does the TRANSFER BUS OFF light indicate on the 737NG?",
        ("The related transfer bus is not energized", "The bus transfer switch is in OFF",
         "The standby bus is powered by battery", "The generator drive has disconnected"),
        0,
        "TRANSFER BUS OFF illuminates when the related transfer bus is not energized.",
        "B737_FAMILY", "Electrical", "intermediate", "B737 FCOM 6.10",
    ),
    _record(
        "b737-fuel-001",
        "When is center tank fuel used on the 737NG during normal operations?",
        ("After the main tanks are empty", "First, while center tank pumps are ON and fuel remains",
         "Only in an emergency", "Simultaneously with main tank fuel at equal rate"),
        1,
        "Center tank pumps produce higher output pressure, so center tank fuel is used first whenever the pumps are ON.",
        "B737_FAMILY", "Fuel", "intermediate", "B737 FCOM 12.20",
    ),
    _record(
        "b737-lgr-001",
        "How is the landing gear extended on the 737NG when hydraulic system A is lost?",
        ("Using system B automatically", "Using the manual gear extension handles",
         "Using the standby hydraulic system", "The gear cannot be extended"),
        1,
        "Manual gear extension releases the uplocks so the gear free-falls to the down and locked position.",
        "B737_FAMILY", "Landing Gear", "intermediate", "B737 FCOM 14.20",
    ),
    _record(
        "b737-apu-001",
        "What is the maximum altitude for APU bleed and electrical load combined on the 737NG?",
        ("10 000 ft", "17 000 ft", "25 000 ft", "41 000 ft"),
        0,
        "APU bleed plus electrical load is limited to 10 000 ft; bleed alone to 17 000 ft.",
        "B737_FAMILY", "APU", "advanced", "B737 FCOM Limitations - APU",
    ),
    _record(
        "b737-fire-001",
        "How many fire extinguisher bottles are available for the engines on the 737NG?",
        ("One, shared between both engines", "Two, either can be discharged to either engine",
         "Two, one dedicated per engine", "Three, with one spare"),
        1,
        "Two engine fire bottles are installed; either bottle can be discharged into either engine.",
        "B737_FAMILY", "Fire Protection", "intermediate", "B737 FCOM 8.20",
    ),
)

GENERAL_QUESTIONS = (
    _record(
        "gen-met-001",
        "What is the ICAO standard atmosphere temperature at mean sea level?",
        ("0°C", "10°C", "15°C", "20°C"),
        2,
        "The ICAO standard atmosphere defines 15°C and 1013.25 hPa at mean sea level with a lapse rate of 1.98°C per "
        "1000 ft.",
        "GENERAL", "Meteorology", "basic", "ICAO Doc 7488",
    ),
    _record(
        "gen-met-002",
        "Which cloud type is most often associated with severe turbulence and wind shear?",
        ("Stratus", "Cirrus", "Cumulonimbus", "Altostratus"),
        2,
        "Cumulonimbus clouds produce severe turbulence, icing, hail and microbursts.",
        "GENERAL", "Meteorología", "basic", "ICAO Annex 3",
    ),
    _record(
        "gen-reg-001",
        "Under EASA rules, what is the maximum flight time for a flight crew member in 28 consecutive days?",
        ("90 hours", "100 hours", "110 hours", "120 hours"),
        1,
        "ORO.FTL.210 limits total flight time to 100 hours in any 28 consecutive days.",
        "GENERAL", "Regulations", "intermediate", "EASA ORO.FTL.210", "ORO.FTL.210",
    ),
    _record(
        "gen-air-001",
        "What does the term Vmo refer to?",
        ("Minimum control speed", "Maximum operating speed", "Maneuvering speed", "Maximum flap extended speed"),
        1,
        "Vmo is the maximum operating limit speed that may not be deliberately exceeded in any flight regime.",
        "GENERAL", "Aircraft General", "basic", "CS-25.1505",
    ),
    _record(
        "gen-app-001",
        "What is the standard ILS glide slope angle?",
        ("2.5 degrees", "3 degrees", "3.5 degrees", "4 degrees"),
        1,
        "The nominal ILS glide path angle is 3 degrees.",
        "GENERAL", "Approach Procedures", "basic", "ICAO Annex 10",
    ),
    _record(
        "gen-emer-001",
        "What is the first action after a rapid decompression at cruise altitude?",
        ("Start an emergency descent", "Don oxygen masks and establish communication",
         "Declare an emergency to ATC", "Switch the transponder to 7700"),
        1,
        "Crew oxygen masks are donned and crew communication established before the emergency descent is initiated.",
        "GENERAL", "Emergency Procedures", "intermediate", "Operator QRH",
    ),
)

MINIMAL_QUESTIONS = (
    _record(
        "min-001",
        "What is the primary purpose of the APU?",
        ("Provide thrust during takeoff", "Provide electrical power and bleed air independent of the engines",
         "Drive the hydraulic pumps in flight", "Supply fuel pressure to the engines"),
        1,
        "The APU provides electrical power and bleed air on ground and, within limits, in flight.",
        "GENERAL", "Aircraft General", "basic", source=MINIMAL_SOURCE,
    ),
    _record(
        "min-002",
        "Which instrument indicates the aircraft attitude relative to the horizon?",
        ("Altimeter", "Vertical speed indicator", "Attitude indicator", "Heading indicator"),
        2,
        "The attitude indicator displays pitch and bank relative to the natural horizon.",
        "GENERAL", "Flight Instruments", "basic", source=MINIMAL_SOURCE,
    ),
    _record(
        "min-003",
        "What is the transponder code for loss of communication?",
        ("7500", "7600", "7700", "2000"),
        1,
        "Squawk 7600 indicates radio communication failure.",
        "GENERAL", "Communication", "basic", source=MINIMAL_SOURCE,
    ),
    _record(
        "min-004",
        "What does a TAWS 'PULL UP' warning require?",
        ("Reduce thrust and descend", "Immediate escape maneuver with maximum climb performance",
         "Continue the approach and monitor", "Extend the speed brakes"),
        1,
        "A PULL UP warning requires an immediate terrain escape maneuver.",
        "GENERAL", "GPWS", "intermediate", source=MINIMAL_SOURCE,
    ),
    _record(
        "min-005",
        "At what cabin altitude do passenger oxygen masks deploy automatically on most transport aircraft?",
        ("8 000 ft", "10 000 ft", "14 000 ft", "18 000 ft"),
        2,
        "Passenger masks deploy automatically when cabin altitude exceeds about 14 000 ft.",
        "GENERAL", "Oxygen", "intermediate", source=MINIMAL_SOURCE,
    ),
)


def _copies(records) -> List[Dict]:
    return [dict(r, options=list(r["options"])) for r in records]


def load_a320_questions() -> List[Dict]:
    return _copies(A320_QUESTIONS)


def load_b737_questions() -> List[Dict]:
    return _copies(B737_QUESTIONS)


def load_general_questions() -> List[Dict]:
    return _copies(GENERAL_QUESTIONS)


def load_minimal_questions() -> List[Dict]:
    return _copies(MINIMAL_QUESTIONS)


BUNDLED_LOADERS = (load_a320_questions, load_b737_questions, load_general_questions)

SETS = {
    "a320": load_a320_questions,
    "b737": load_b737_questions,
    "general": load_general_questions,
    "minimal": load_minimal_questions,
}
