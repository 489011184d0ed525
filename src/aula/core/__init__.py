"""Business logic, one module per area.

- cuentas, materias, alumnos: accounts, courses and rosters
- actividades, cola: assignments, deliveries and the AI grading queue
- asistencia: QR attendance sessions and unit closing
- evaluaciones, calificador: quizzes/exams and automatic grading
- ia: LLM-assisted authoring
- plagio, reportes, drive_sync: plagiarism, reports and Drive provisioning
- worker: runs every queue stage until idle
"""
