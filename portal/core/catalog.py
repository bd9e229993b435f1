from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Career:
    name: str
    code: str
    faculty: str


FACULTY_INGENIERIA = "Facultad de Ingeniería"
FACULTY_EDUCACION = "Facultad de Educación"
FACULTY_ECOTURISMO = "Facultad de Ecoturismo"

CAREERS: tuple[Career, ...] = (
    Career("Ingeniería de Sistemas e Informática", "ISI", FACULTY_INGENIERIA),
    Career("Ingeniería Forestal y Medio Ambiente", "IFMA", FACULTY_INGENIERIA),
    Career("Ingeniería Agroindustrial", "IA", FACULTY_INGENIERIA),
    Career("Medicina Veterinaria y Zootecnia", "MVZ", FACULTY_INGENIERIA),
    Career("Educación Inicial y Especial", "EIE", FACULTY_EDUCACION),
    Career("Educación Primaria e Informática", "EPI", FACULTY_EDUCACION),
    Career("Educación Matemática y Computación", "EMC", FACULTY_EDUCACION),
    Career("Derecho y Ciencias Políticas", "DCP", FACULTY_EDUCACION),
    Career("Enfermería", "ENF", FACULTY_EDUCACION),
    Career("Contabilidad y Finanzas", "CF", FACULTY_ECOTURISMO),
    Career("Administración y Negocios Internacionales", "ANI", FACULTY_ECOTURISMO),
    Career("Ecoturismo", "ECO", FACULTY_ECOTURISMO),
)

CAREERS_BY_NAME: dict[str, Career] = {career.name: career for career in CAREERS}

# Upper-case names used by the external directory.
DIRECTORY_FACULTY_NAMES: dict[str, str] = {
    "INGENIERIA": FACULTY_INGENIERIA,
    "EDUCACION": FACULTY_EDUCACION,
    "ECOTURISMO": FACULTY_ECOTURISMO,
}

DIRECTORY_CAREER_NAMES: dict[str, str] = {career.name.upper(): career.name for career in CAREERS}


def faculties() -> list[str]:
    return sorted({career.faculty for career in CAREERS})


def careers_for(faculty: str) -> list[Career]:
    return [career for career in CAREERS if career.faculty == faculty]


def career_code(name: str) -> str:
    career = CAREERS_BY_NAME.get(name)
    return career.code if career else ""
